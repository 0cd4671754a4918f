"""Root procedure router: `health` plus the nested `todo.*` procedures."""

from ..rpc import Context, ProcedureRouter
from ..schemas import HealthOut
from ..utils import iso_now
from .todos import router as todo_router

app_router = ProcedureRouter()


@app_router.query("health", output=HealthOut)
def health(ctx: Context, _input: None) -> dict:
    """Liveness check; needs no session."""
    return {"status": "ok", "timestamp": iso_now()}


app_router.merge("todo", todo_router)
