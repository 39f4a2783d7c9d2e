"""ASGI entry point.

Builds the FastAPI app: lifespan hooks for the store and the shared service
resources, CORS from settings, one handler that renders every ServiceError as
``{"detail": message}``, Prometheus instrumentation at /metrics and the router.

Run locally with::

    DATABASE_URL=sqlite+aiosqlite:///./local.db uvicorn app.main:app --reload

Startup creates missing tables, then initializes the ServiceManager (logger and
outbound HTTP client). Shutdown releases them in reverse order.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import get_settings
from app.database import close_db, init_db
from app.dependencies import _service_manager
from app.exceptions import ServiceError
from app.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    await init_db()
    await _service_manager.initialize()
    yield
    await _service_manager.cleanup()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Link shortener with click analytics and HYPD product metadata",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# /metrics must be registered before the catch-all /{short_code} route
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
