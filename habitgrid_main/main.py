import datetime
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from habitgrid_main.routes_habits import router as habits_router
from habitgrid_main.routes_profile import router as profile_router
from habitgrid_main.store import HabitStore

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:])
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


# -----------------------
# APP
# -----------------------
def create_app(store: Optional[HabitStore] = None) -> FastAPI:
    app = FastAPI(title="HabitGrid API")
    app.state.store = store or HabitStore()
    app.include_router(habits_router)
    app.include_router(profile_router)

    # Error bodies are always {"message": ...}
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"message": exc.detail},
                            status_code=exc.status_code,
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        message = _validation_message(exc)
        logger.info("Rejected %s %s: %s", request.method, request.url.path, message)
        return JSONResponse({"message": message}, status_code=422)

    @app.get("/health")
    def health():
        return {"status": "ok", "time": datetime.datetime.now(datetime.timezone.utc).isoformat()}

    return app


app = create_app()
