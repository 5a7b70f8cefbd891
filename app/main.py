from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from app.core.config import settings
from app.core.context import build_context
from app.core.logging import setup_logging
from app.core.middleware import StructlogMiddleware
from app.modules.alerts import router as alerts_router
from app.modules.emergency import router as emergency_router
from app.modules.insights import router as insights_router
from app.modules.vitals import router as vitals_router
from app.shared.exceptions import (
    ConfigurationError,
    NotificationDispatchError,
    ReadingValidationError,
    RelayError,
    UpstreamServiceError,
)

setup_logging()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    context = app.state.context
    context.monitor.start()
    log.info(
        "relay started",
        geolocation_provider=context.settings.GEOLOCATION_PROVIDER,
        notifier=type(context.workflow.notifier).__name__ if context.workflow.notifier else None,
        ai_configured=context.insights.configured,
    )

    yield

    # Shutdown
    await context.shutdown()
    log.info("relay stopped")


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    ## Vitals Relay API

    This API provides:
    * **Ingest**: the wearable pushes readings over HTTP or WebSocket
    * **Live streams**: dashboards receive readings, alerts and emergencies over WebSocket or SSE
    * **Alerts**: threshold and fall detection evaluated once per reading
    * **Emergency escalation**: location lookup, nearest hospital and contact notification
    """,
    version="0.1.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)
app.state.context = build_context(settings)

# Set all CORS enabled origins
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(StructlogMiddleware)


def _error_response(status_code: int, exc: RelayError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": str(exc)},
    )


@app.exception_handler(ReadingValidationError)
async def reading_validation_handler(request: Request, exc: ReadingValidationError) -> JSONResponse:
    log.info("reading rejected", path=request.url.path, error=str(exc))
    return _error_response(status.HTTP_400_BAD_REQUEST, exc)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    log.warning("capability not configured", path=request.url.path, error=str(exc))
    return _error_response(status.HTTP_503_SERVICE_UNAVAILABLE, exc)


@app.exception_handler(NotificationDispatchError)
@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    log.error("upstream call failed", path=request.url.path, error=str(exc))
    return _error_response(status.HTTP_502_BAD_GATEWAY, exc)


app.include_router(vitals_router.router, prefix=settings.API_V1_STR, tags=["vitals"])
app.include_router(alerts_router.router, prefix=f"{settings.API_V1_STR}/alerts", tags=["alerts"])
app.include_router(
    emergency_router.router, prefix=f"{settings.API_V1_STR}/emergency", tags=["emergency"]
)
app.include_router(insights_router.router, prefix=f"{settings.API_V1_STR}/ai", tags=["ai"])


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    return "Vitals monitoring server is running"


@app.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
