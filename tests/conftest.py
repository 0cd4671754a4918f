import json
from datetime import datetime
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

from todo_rpc.main import create_app
from todo_rpc.settings import get_settings

DEFAULT_PASSWORD = "correct horse battery"


def parse_ts(value: str) -> datetime:
    # fromisoformat only learned about the 'Z' suffix in Python 3.11
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class Caller:
    """Calls RPC procedures on behalf of one user (or anonymously)."""

    def __init__(self, client: TestClient, token: Optional[str] = None, user: Optional[dict] = None) -> None:
        self.client = client
        self.token = token
        self.user = user

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def query(self, path: str, input: Any = None):
        params = {"input": json.dumps(input)} if input is not None else None
        return self.client.get(f"/trpc/{path}", params=params, headers=self.headers)

    def mutate(self, path: str, input: Any = None):
        body = json.dumps(input) if input is not None else ""
        return self.client.post(
            f"/trpc/{path}",
            content=body,
            headers={**self.headers, "content-type": "application/json"},
        )

    def data(self, response) -> Any:
        assert response.status_code == 200, response.text
        return response.json()["result"]["data"]


@pytest.fixture
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'todos.db'}")
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("FRONTEND_URL", "http://localhost:3000")
    return create_app(get_settings())


@pytest.fixture
def client(app):
    return TestClient(app)


def sign_up(client: TestClient, email: str, name: str = "Test User", password: str = DEFAULT_PASSWORD) -> Caller:
    res = client.post("/api/auth/sign-up/email", json={"email": email, "password": password, "name": name})
    assert res.status_code == 200, res.text
    body = res.json()
    # Each Caller authenticates with its bearer token; keep the cookie jar empty.
    client.cookies.clear()
    return Caller(client, token=body["token"], user=body["user"])


@pytest.fixture
def alice(client) -> Caller:
    return sign_up(client, "alice@example.com", name="Alice")


@pytest.fixture
def bob(client) -> Caller:
    return sign_up(client, "bob@example.com", name="Bob")


@pytest.fixture
def anonymous(client) -> Caller:
    return Caller(client)
