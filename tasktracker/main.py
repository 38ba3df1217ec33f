# tasktracker/main.py
"""FastAPI application for the task tracker backend."""

import asyncio
import logging
import os
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasktracker.config import DEFAULT_JWT_SECRET, Settings
from tasktracker.database import Database
from tasktracker.errors import TaskTrackerError
from tasktracker.routes.auth import router as auth_router
from tasktracker.routes.tasks import router as tasks_router
from tasktracker.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

SERVICE_NAME = "task-tracker-api"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, expire stale tasks, and run the interval sweeper."""
    db: Database = app.state.db
    db.create_db_and_tables()

    sweeper = ExpirySweeper(db, app.state.settings.expiry_sweep_interval)
    app.state.sweeper = sweeper
    await asyncio.to_thread(sweeper.run_once)
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


def _error_body(settings: Settings, message: str, details: Optional[Any] = None) -> dict:
    body: dict[str, Any] = {"message": message}
    if details is not None and not settings.is_production:
        body["details"] = details
    return body


def _register_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(TaskTrackerError)
    async def handle_task_tracker_error(request: Request, exc: TaskTrackerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(settings, exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {
                "loc": [str(part) for part in err.get("loc", ())],
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            }
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400, content=_error_body(settings, "Validation failed", errors)
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=400,
            content=_error_body(settings, "Duplicate or conflicting value", str(exc.orig)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            logger.info("404 Not Found: %s %s", request.method, request.url.path)
            return JSONResponse(
                status_code=404, content={"message": f"Route {request.url.path} not found"}
            )
        return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500, content=_error_body(settings, "Server error", str(exc))
        )


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """Build the application around an explicit settings object and database."""
    settings = settings or Settings.from_env()
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        logger.warning("JWT_SECRET is not set; using the built-in development secret")

    app = FastAPI(title="Task Tracker", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database or Database(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-auth-token"],
        expose_headers=["x-auth-token"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %s (%.1fms)",
            request.method, request.url.path, response.status_code, elapsed_ms,
        )
        return response

    _register_error_handlers(app, settings)
    app.include_router(auth_router)
    app.include_router(tasks_router)

    @app.get("/")
    def root():
        """Service banner."""
        return {"message": "Task Tracker API is running", "environment": settings.environment}

    @app.get("/api/health")
    def health_check():
        """Health check endpoint, including database reachability."""
        connected = app.state.db.ping()
        body = {
            "status": "healthy" if connected else "unhealthy",
            "service": SERVICE_NAME,
            "database": {"connected": connected},
        }
        return JSONResponse(status_code=200 if connected else 500, content=body)

    return app


app = create_app()


def run() -> None:
    """Start the API with uvicorn."""
    import uvicorn

    settings: Settings = app.state.settings
    configure_logging(settings.log_level)
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "5001")))


if __name__ == "__main__":
    run()
