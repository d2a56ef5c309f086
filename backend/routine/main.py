import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routine.api.routes import health, notifications, routines
from routine.core.config import get_settings
from routine.core.exceptions import AppError
from routine.core.logging import configure_logging
from routine.core.middleware import RequestContextMiddleware, RequestSizeLimitMiddleware
from routine.db.bootstrap import ensure_runtime_schema_compatibility
from routine.services.notification_hub import topic_hub
from routine.services.publisher import HubPublisher

settings = get_settings()
configure_logging(settings)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_runtime_schema_compatibility()
    publisher = HubPublisher.from_settings(topic_hub, settings)
    publisher.connect()
    app.state.publisher = publisher
    try:
        yield
    finally:
        publisher.close()
        await topic_hub.close()


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name, lifespan=lifespan)
app.add_exception_handler(AppError, app_error_handler)

app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_size_bytes)
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix=settings.api_prefix, tags=["health"])
app.include_router(routines.router, prefix=f"{settings.api_prefix}/routines", tags=["routines"])
app.include_router(notifications.router, prefix=settings.api_prefix, tags=["notifications"])
