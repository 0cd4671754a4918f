"""
Typed procedures served over a single batched HTTP endpoint.

Wire format
-----------
- Queries are called with GET; the JSON input travels in the `input` query
  parameter. Mutations are called with POST; the JSON input is the body.
- With `?batch=1` the path holds comma separated procedure names and the
  input is an object keyed by call index (`{"0": ..., "1": ...}`). The
  response is a JSON array with one envelope per call, in call order.
- Success envelope: `{"result": {"data": ...}}`
- Error envelope: `{"error": {"message", "code", "data": {"code", "httpStatus", "path"}}}`
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type, Union

from pydantic import BaseModel, TypeAdapter, ValidationError

from .auth import AuthService, Principal
from .db import Database
from .errors import (
    InternalError,
    MethodNotSupported,
    ParseError,
    ProcedureNotFound,
    RPCError,
    StoreFailure,
    Unauthenticated,
    ValidationFailed,
    validation_details,
)

logger = logging.getLogger(__name__)

QUERY = "query"
MUTATION = "mutation"

_METHOD_FOR_KIND = {QUERY: "GET", MUTATION: "POST"}


class Context:
    """
    Per-call context handed to procedure handlers.

    Holds the unit-of-work connection and lazily resolves the principal from
    the request headers.
    """

    def __init__(self, conn: sqlite3.Connection, headers: Mapping[str, str], auth: AuthService) -> None:
        self.conn = conn
        self.headers = headers
        self._auth = auth
        self._principal: Optional[Principal] = None
        self._resolved = False

    @property
    def principal(self) -> Optional[Principal]:
        if not self._resolved:
            self._principal = self._auth.get_session(self.conn, self.headers)
            self._resolved = True
        return self._principal

    @property
    def user_id(self) -> str:
        """Identifier of the authenticated principal; raises Unauthenticated when absent."""
        principal = self.principal
        if principal is None:
            raise Unauthenticated()
        return principal.user_id


Handler = Callable[[Context, Any], Any]


@dataclass(frozen=True)
class Procedure:
    """A named operation: its kind, input shape, output shape and auth requirement."""

    kind: str
    handler: Handler
    input_model: Optional[Type[BaseModel]] = None
    output: Any = None
    protected: bool = False
    description: str = ""
    _output_adapter: Optional[TypeAdapter] = field(default=None, compare=False, repr=False)

    def parse_input(self, raw: Any) -> Any:
        if self.input_model is None:
            return None
        try:
            return self.input_model.model_validate(raw)
        except ValidationError as exc:
            raise ValidationFailed(detail=validation_details(exc)) from exc

    def serialize(self, result: Any) -> Any:
        if self._output_adapter is None:
            return result
        return self._output_adapter.dump_python(self._output_adapter.validate_python(result), mode="json")


class ProcedureRouter:
    """
    Registry of procedures keyed by dotted path.

    Usage:
        router = ProcedureRouter()

        @router.query("getAll", output=List[TodoOut], protected=True)
        def get_all(ctx, _input): ...

        app_router = ProcedureRouter()
        app_router.merge("todo", router)   # -> "todo.getAll"
    """

    def __init__(self) -> None:
        self._procedures: Dict[str, Procedure] = {}

    def _register(
        self,
        kind: str,
        name: str,
        input_model: Optional[Type[BaseModel]],
        output: Any,
        protected: bool,
    ) -> Callable[[Handler], Handler]:
        def decorator(fn: Handler) -> Handler:
            if name in self._procedures:
                raise ValueError(f"Procedure {name!r} is already registered")
            self._procedures[name] = Procedure(
                kind=kind,
                handler=fn,
                input_model=input_model,
                output=output,
                protected=protected,
                description=(fn.__doc__ or "").strip(),
                _output_adapter=TypeAdapter(output) if output is not None else None,
            )
            return fn

        return decorator

    def query(
        self,
        name: str,
        *,
        input: Optional[Type[BaseModel]] = None,
        output: Any = None,
        protected: bool = False,
    ) -> Callable[[Handler], Handler]:
        return self._register(QUERY, name, input, output, protected)

    def mutation(
        self,
        name: str,
        *,
        input: Optional[Type[BaseModel]] = None,
        output: Any = None,
        protected: bool = False,
    ) -> Callable[[Handler], Handler]:
        return self._register(MUTATION, name, input, output, protected)

    def merge(self, prefix: str, other: "ProcedureRouter") -> None:
        """Mount every procedure of `other` under `prefix.`."""
        for name, procedure in other.procedures.items():
            path = f"{prefix}.{name}"
            if path in self._procedures:
                raise ValueError(f"Procedure {path!r} is already registered")
            self._procedures[path] = procedure

    def get(self, path: str) -> Optional[Procedure]:
        return self._procedures.get(path)

    @property
    def procedures(self) -> Dict[str, Procedure]:
        return dict(self._procedures)

    def describe(self) -> List[Dict[str, Any]]:
        """Manifest of every procedure with its input/output JSON schema."""
        manifest = []
        for path in sorted(self._procedures):
            procedure = self._procedures[path]
            manifest.append(
                {
                    "path": path,
                    "kind": procedure.kind,
                    "protected": procedure.protected,
                    "description": procedure.description,
                    "input": procedure.input_model.model_json_schema() if procedure.input_model else None,
                    "output": procedure._output_adapter.json_schema() if procedure._output_adapter else None,
                }
            )
        return manifest


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class RPCResponse:
    """Result of an endpoint call: HTTP status and JSON body."""

    status: int
    body: Any


def _success(data: Any) -> Dict[str, Any]:
    return {"result": {"data": data}}


def _failure(error: RPCError, path: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {"code": error.code, "httpStatus": error.http_status, "path": path}
    if error.detail is not None:
        data["detail"] = error.detail
    return {"error": {"message": error.message, "code": error.json_rpc_code, "data": data}}


class RPCHandler:
    """Dispatches endpoint calls to procedures, one unit of work per call."""

    def __init__(self, router: ProcedureRouter, database: Database, auth: AuthService) -> None:
        self._router = router
        self._database = database
        self._auth = auth

    def handle(
        self,
        method: str,
        paths: str,
        raw_input: Optional[Union[str, bytes]],
        headers: Mapping[str, str],
        batch: bool = False,
    ) -> RPCResponse:
        """
        Serve one HTTP request against the endpoint.

        Args:
            method: HTTP method, GET for queries and POST for mutations
            paths: procedure path, or comma separated paths when batching
            raw_input: JSON input, text from the query parameter or raw UTF-8 body bytes, if any
            headers: request headers with lower-case names
            batch: whether the request uses the batch wire format
        """
        names = [p.strip() for p in paths.split(",")] if batch else [paths.strip()]

        try:
            inputs = self._decode_inputs(raw_input, len(names), batch)
        except RPCError as exc:
            logger.info("[rpc] path=%s code=%s: %s", paths, exc.code, exc.message)
            envelopes = [_failure(exc, name) for name in names]
            body: Any = envelopes if batch else envelopes[0]
            return RPCResponse(status=exc.http_status, body=body)

        results = [self._call(method, name, value, headers) for name, value in zip(names, inputs)]
        statuses = {status for status, _ in results}
        status = statuses.pop() if len(statuses) == 1 else 207
        if batch:
            return RPCResponse(status=status, body=[envelope for _, envelope in results])
        return RPCResponse(status=status, body=results[0][1])

    @staticmethod
    def _decode_inputs(raw_input: Optional[Union[str, bytes]], count: int, batch: bool) -> List[Any]:
        if isinstance(raw_input, bytes):
            try:
                raw_input = raw_input.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ParseError("Input is not valid UTF-8") from exc
        if raw_input is None or raw_input.strip() == "":
            return [None] * count
        try:
            decoded = json.loads(raw_input)
        except ValueError as exc:
            raise ParseError() from exc
        if not batch:
            return [decoded]
        if decoded is None:
            return [None] * count
        if not isinstance(decoded, dict):
            raise ParseError("Batch input must be an object keyed by call index")
        return [decoded.get(str(i)) for i in range(count)]

    def _call(self, method: str, path: str, raw: Any, headers: Mapping[str, str]) -> Tuple[int, Dict[str, Any]]:
        try:
            data = self._run(method, path, raw, headers)
        except RPCError as exc:
            logger.info("[rpc] path=%s code=%s: %s", path, exc.code, exc.message)
            return exc.http_status, _failure(exc, path)
        except sqlite3.Error:
            logger.exception("[rpc] path=%s store failure", path)
            return StoreFailure.http_status, _failure(StoreFailure(), path)
        except Exception:
            logger.exception("[rpc] path=%s internal error", path)
            return InternalError.http_status, _failure(InternalError(), path)
        return 200, _success(data)

    def _run(self, method: str, path: str, raw: Any, headers: Mapping[str, str]) -> Any:
        procedure = self._router.get(path)
        if procedure is None:
            raise ProcedureNotFound(f'No "{method.lower()}"-procedure on path "{path}"')
        if _METHOD_FOR_KIND[procedure.kind] != method.upper():
            raise MethodNotSupported(f"Unsupported {method.upper()}-request to {procedure.kind} procedure at path \"{path}\"")

        with self._database.connect() as conn:
            ctx = Context(conn, headers, self._auth)
            if procedure.protected and ctx.principal is None:
                raise Unauthenticated()
            value = procedure.parse_input(raw)
            result = procedure.handler(ctx, value)
            return procedure.serialize(result)
