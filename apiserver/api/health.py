"""Health Check: default liveness handler mounted at {apiPrefix}{healthPath}.

Invariants:
    - GET {apiPrefix}{healthPath} returns 200 {"ok": true} while the process is up
    - Replaceable through Config.set_health_check()
"""

from starlette.requests import Request
from starlette.responses import JSONResponse


async def health_check(request: Request) -> JSONResponse:
    """Basic liveness probe. Returns 200 if the process is up."""
    return JSONResponse({"ok": True})
