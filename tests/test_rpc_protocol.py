import json
import sqlite3
import uuid

import pytest

from todo_rpc.routers import app_router
from todo_rpc.rpc import ProcedureRouter


class TestBatching:
    def test_batched_queries_return_envelopes_in_order(self, client, alice):
        alice.data(alice.mutate("todo.create", {"title": "one"}))
        res = client.get(
            "/trpc/health,todo.getAll",
            params={"batch": "1", "input": json.dumps({})},
            headers=alice.headers,
        )
        assert res.status_code == 200
        body = res.json()
        assert isinstance(body, list) and len(body) == 2
        assert body[0]["result"]["data"]["status"] == "ok"
        assert [t["title"] for t in body[1]["result"]["data"]] == ["one"]

    def test_batched_mutations_use_indexed_inputs(self, client, alice):
        res = client.post(
            "/trpc/todo.create,todo.create?batch=1",
            json={"0": {"title": "first"}, "1": {"title": "second"}},
            headers=alice.headers,
        )
        assert res.status_code == 200
        titles = [env["result"]["data"]["title"] for env in res.json()]
        assert titles == ["first", "second"]

    def test_mixed_outcomes_use_multi_status(self, client, alice):
        missing = str(uuid.uuid4())
        res = client.get(
            "/trpc/todo.getAll,todo.getById",
            params={"batch": "1", "input": json.dumps({"1": {"id": missing}})},
            headers=alice.headers,
        )
        assert res.status_code == 207
        ok, failed = res.json()
        assert ok["result"]["data"] == []
        assert failed["error"]["data"]["code"] == "NOT_FOUND"
        assert failed["error"]["data"]["httpStatus"] == 404
        assert failed["error"]["data"]["path"] == "todo.getById"

    def test_failed_call_does_not_undo_earlier_calls(self, client, alice):
        res = client.post(
            "/trpc/todo.create,todo.create?batch=1",
            json={"0": {"title": "kept"}, "1": {"title": ""}},
            headers=alice.headers,
        )
        assert res.status_code == 207
        assert [t["title"] for t in alice.data(alice.query("todo.getAll"))] == ["kept"]

    def test_batch_input_must_be_an_object(self, client, alice):
        res = client.post("/trpc/todo.create?batch=1", json=[{"title": "x"}], headers=alice.headers)
        assert res.status_code == 400
        body = res.json()
        assert body[0]["error"]["data"]["code"] == "PARSE_ERROR"


class TestProtocolErrors:
    def test_unknown_procedure(self, anonymous):
        res = anonymous.query("todo.nope")
        assert res.status_code == 404
        assert res.json()["error"]["data"]["code"] == "NOT_FOUND"

    def test_mutation_over_get_is_rejected(self, alice):
        res = alice.query("todo.create", {"title": "x"})
        assert res.status_code == 405
        assert res.json()["error"]["data"]["code"] == "METHOD_NOT_SUPPORTED"
        assert alice.data(alice.query("todo.getAll")) == []

    def test_query_over_post_is_rejected(self, alice):
        res = alice.mutate("todo.getAll")
        assert res.status_code == 405

    def test_invalid_json_input(self, client, alice):
        res = client.get("/trpc/todo.getById", params={"input": "{not json"}, headers=alice.headers)
        assert res.status_code == 400
        assert res.json()["error"]["data"]["code"] == "PARSE_ERROR"

    def test_body_must_be_utf8(self, client, alice):
        res = client.post("/trpc/todo.create", content=b'{"title": "caf\xff"}', headers=alice.headers)
        assert res.status_code == 400
        assert res.json()["error"]["data"]["code"] == "PARSE_ERROR"
        assert alice.data(alice.query("todo.getAll")) == []

    def test_utf8_body_is_decoded(self, client, alice):
        res = client.post("/trpc/todo.create", content=json.dumps({"title": "caf\u00e9"}, ensure_ascii=False).encode("utf-8"), headers=alice.headers)
        assert alice.data(res)["title"] == "caf\u00e9"

    def test_store_failure_is_reported_generically(self, client, alice, monkeypatch):
        def broken(self, owner_id):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr("todo_rpc.repositories.TodoRepository.list_mine", broken)
        res = alice.query("todo.getAll")
        assert res.status_code == 500
        error = res.json()["error"]
        assert error["data"]["code"] == "INTERNAL_SERVER_ERROR"
        assert "disk" not in error["message"]

    def test_unexpected_exception_is_reported_generically(self, client, alice, monkeypatch):
        def broken(self, owner_id, data):
            raise RuntimeError("secret internals")

        monkeypatch.setattr("todo_rpc.repositories.TodoRepository.create", broken)
        res = alice.mutate("todo.create", {"title": "x"})
        assert res.status_code == 500
        assert "secret" not in res.json()["error"]["message"]


class TestProcedureRouter:
    def test_app_router_paths(self):
        assert sorted(app_router.procedures) == [
            "health",
            "todo.create",
            "todo.delete",
            "todo.getAll",
            "todo.getById",
            "todo.toggle",
            "todo.update",
        ]
        assert app_router.get("health").protected is False
        assert all(app_router.get(p).protected for p in app_router.procedures if p.startswith("todo."))

    def test_duplicate_registration_fails(self):
        router = ProcedureRouter()

        @router.query("ping")
        def ping(ctx, _input):
            return "pong"

        with pytest.raises(ValueError):
            router.query("ping")(ping)

        parent = ProcedureRouter()
        parent.merge("a", router)
        with pytest.raises(ValueError):
            parent.merge("a", router)

    def test_describe_includes_schemas(self):
        manifest = {entry["path"]: entry for entry in app_router.describe()}
        create = manifest["todo.create"]
        assert create["kind"] == "mutation"
        assert "title" in create["input"]["properties"]
        assert manifest["todo.getAll"]["input"] is None
        assert manifest["todo.getAll"]["output"]["type"] == "array"
