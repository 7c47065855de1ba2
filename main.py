from contextlib import asynccontextmanager
from typing import Optional
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import timeutil
from config import Settings, load_settings
from db import Database
from errors import AppError
from routers import ALL_ROUTERS

logger = logging.getLogger("app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _field_name(loc) -> str:
    # ("body", "borrowerName") -> "borrowerName"; ("query", "page") -> "page"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [{"field": _field_name(e.get("loc", ())), "message": e.get("msg", "invalid value")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"errors": errors})


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error method=%s path=%s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "internal server error"})


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or load_settings()
    database = database or Database(settings.database_url)

    configure_logging(settings.log_level)
    timeutil.configure(settings.timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        opened_here = not database.is_open
        database.open()
        logger.info("database open url=%s", database.engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            if opened_here:
                database.close()
                logger.info("database closed")

    app = FastAPI(title="Asset Loan Tracker API", lifespan=lifespan)
    app.state.settings = settings
    app.state.database = database

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        elapsed_ms = int((time.time() - start) * 1000)
        logger.info(
            "method=%s path=%s status=%s elapsed_ms=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": timeutil.now().isoformat()}

    for router in ALL_ROUTERS:
        app.include_router(router)

    return app


app = create_app()
