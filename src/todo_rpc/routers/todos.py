from __future__ import annotations

from typing import List

from ..errors import NotFoundOrForbidden
from ..repositories import TodoRepository
from ..rpc import Context, ProcedureRouter
from ..schemas import DeleteResult, TodoCreate, TodoId, TodoOut, TodoUpdate

router = ProcedureRouter()

# Absent rows and rows owned by someone else get the same answer.
_NOT_FOUND = "Todo not found"
_NOT_FOUND_OR_NOT_OWNED = "Todo not found or you don't have permission to {action} it"


def _repo(ctx: Context) -> TodoRepository:
    return TodoRepository(ctx.conn)


# PUBLIC_INTERFACE
@router.query("getAll", output=List[TodoOut], protected=True)
def get_all(ctx: Context, _input: None) -> list:
    """List the caller's todos, newest first."""
    return _repo(ctx).list_mine(ctx.user_id)


# PUBLIC_INTERFACE
@router.query("getById", input=TodoId, output=TodoOut, protected=True)
def get_by_id(ctx: Context, data: TodoId) -> dict:
    """Get one of the caller's todos by id."""
    item = _repo(ctx).get_one(str(data.id), ctx.user_id)
    if item is None:
        raise NotFoundOrForbidden(_NOT_FOUND)
    return item


# PUBLIC_INTERFACE
@router.mutation("create", input=TodoCreate, output=TodoOut, protected=True)
def create(ctx: Context, data: TodoCreate) -> dict:
    """Create a todo owned by the caller."""
    return _repo(ctx).create(ctx.user_id, data)


# PUBLIC_INTERFACE
@router.mutation("update", input=TodoUpdate, output=TodoOut, protected=True)
def update(ctx: Context, data: TodoUpdate) -> dict:
    """Update the fields present in the input."""
    item = _repo(ctx).update(ctx.user_id, data)
    if item is None:
        raise NotFoundOrForbidden(_NOT_FOUND_OR_NOT_OWNED.format(action="update"))
    return item


# PUBLIC_INTERFACE
@router.mutation("delete", input=TodoId, output=DeleteResult, protected=True)
def delete(ctx: Context, data: TodoId) -> dict:
    """Delete one of the caller's todos."""
    if not _repo(ctx).delete(str(data.id), ctx.user_id):
        raise NotFoundOrForbidden(_NOT_FOUND_OR_NOT_OWNED.format(action="delete"))
    return {"success": True}


# PUBLIC_INTERFACE
@router.mutation("toggle", input=TodoId, output=TodoOut, protected=True)
def toggle(ctx: Context, data: TodoId) -> dict:
    """Invert the completed flag of one of the caller's todos."""
    item = _repo(ctx).toggle(str(data.id), ctx.user_id)
    if item is None:
        raise NotFoundOrForbidden(_NOT_FOUND)
    return item
