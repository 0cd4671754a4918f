import json

import pytest

from todo_rpc.generate_schema import build_manifest, generate_schema
from todo_rpc.settings import database_path_from_url, get_settings


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        "url, expected",
        [
            ("sqlite:///./data/todos.db", "./data/todos.db"),
            ("sqlite:////var/lib/todos.db", "/var/lib/todos.db"),
            ("todos.db", "todos.db"),
        ],
    )
    def test_paths(self, url, expected):
        assert database_path_from_url(url) == expected

    @pytest.mark.parametrize("url", ["sqlite:///:memory:", "postgres://db/todos", "sqlite:///"])
    def test_rejected(self, url):
        with pytest.raises(ValueError):
            database_path_from_url(url)


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ["DATABASE_URL", "FRONTEND_URL", "HOST", "PORT", "APP_ENV", "LOG_LEVEL", "LOG_FILE", "BCRYPT_ROUNDS"]:
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings.database_path == "./data/todos.db"
        assert settings.cors_allow_origins == ["http://localhost:3000"]
        assert settings.host == "0.0.0.0"
        assert settings.port == 3001
        assert settings.log_level == "INFO"
        assert settings.log_file is None
        assert settings.bcrypt_rounds == 12

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("FRONTEND_URL", "https://a.example, https://b.example")
        monkeypatch.setenv("PORT", "not-a-port")
        monkeypatch.setenv("APP_ENV", "development")
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("COOKIE_SECURE", "yes")
        settings = get_settings()
        assert settings.cors_allow_origins == ["https://a.example", "https://b.example"]
        assert settings.port == 3001
        assert settings.log_level == "DEBUG"
        assert settings.cookie_secure is True


class TestSchemaExport:
    def test_manifest(self):
        manifest = build_manifest()
        assert manifest["endpoint"] == "/trpc"
        paths = [p["path"] for p in manifest["procedures"]]
        assert "todo.toggle" in paths and "health" in paths

    def test_writes_file(self, tmp_path):
        out = generate_schema(str(tmp_path / "interfaces" / "rpc_schema.json"))
        with open(out, encoding="utf-8") as f:
            data = json.load(f)
        assert data == json.loads(json.dumps(build_manifest()))
