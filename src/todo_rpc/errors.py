"""Error kinds reported by RPC procedures.

Each error carries the RPC error code name, its JSON-RPC style numeric code
and the HTTP status used when it is the only outcome of a request.
"""

from __future__ import annotations

from typing import Any, Optional


class RPCError(Exception):
    """Base class for errors surfaced to RPC callers."""

    code = "INTERNAL_SERVER_ERROR"
    json_rpc_code = -32603
    http_status = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, detail: Any = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.detail = detail


class ValidationFailed(RPCError):
    """Input did not match the procedure's shape. Raised before any store access."""

    code = "BAD_REQUEST"
    json_rpc_code = -32600
    http_status = 400
    default_message = "Input validation failed"


class ParseError(RPCError):
    """The request input was not valid JSON."""

    code = "PARSE_ERROR"
    json_rpc_code = -32700
    http_status = 400
    default_message = "Unable to parse request input"


class Unauthenticated(RPCError):
    """No valid session accompanies a call to a protected procedure."""

    code = "UNAUTHORIZED"
    json_rpc_code = -32001
    http_status = 401
    default_message = "Not authenticated"


class NotFoundOrForbidden(RPCError):
    """No row matched the owner-scoped predicate: absent or owned by someone else."""

    code = "NOT_FOUND"
    json_rpc_code = -32004
    http_status = 404
    default_message = "Todo not found"


class ProcedureNotFound(RPCError):
    code = "NOT_FOUND"
    json_rpc_code = -32004
    http_status = 404
    default_message = "No such procedure"


class MethodNotSupported(RPCError):
    """A query was called with POST or a mutation with GET."""

    code = "METHOD_NOT_SUPPORTED"
    json_rpc_code = -32005
    http_status = 405
    default_message = "Method not supported"


class StoreFailure(RPCError):
    """Unexpected failure of the relational store. Details are logged, not returned."""


class InternalError(RPCError):
    """Any other unexpected failure inside a procedure."""


def validation_details(exc: Exception) -> Any:
    """JSON-safe error list of a pydantic ValidationError (None for anything else)."""
    errors = getattr(exc, "errors", None)
    if errors is None:
        return None
    return errors(include_url=False, include_context=False, include_input=False)
