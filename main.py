"""Main FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from routers import subscriptions, webhooks
from schemas.subscriptions import APIResponse
from services.dependencies import get_dependencies
from services.errors import ConflictError, SubscriptionError
from services.subscription_renewal import renewal_scheduler_loop, stop_scheduler_task
from services.subscription_store import check_storage_type

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the optional renewal loop and release clients on shutdown."""
    renewal_task = None

    # Fail at boot rather than on the first request
    check_storage_type(settings.storage_type)

    # Renewal is normally driven by an external scheduler calling POST /renew.
    if settings.enable_subscription_renewal_scheduler:
        renewal_task = asyncio.create_task(
            renewal_scheduler_loop(
                scheduler_factory=lambda: get_dependencies().renewal_scheduler(),
                interval_minutes=settings.subscription_renewal_interval_minutes,
            )
        )
        logger.info(
            "[SUB_RENEWAL] scheduler started "
            f"(interval={settings.subscription_renewal_interval_minutes}m, "
            f"threshold={settings.subscription_renewal_threshold_hours}h)"
        )

    yield

    await stop_scheduler_task(renewal_task)


app = FastAPI(
    title="YouTube Webhook Service",
    description="Manages PubSubHubbub subscriptions for YouTube channels and keeps their leases renewed",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


@app.exception_handler(SubscriptionError)
async def subscription_error_handler(request: Request, exc: SubscriptionError) -> JSONResponse:
    """Render use-case errors as the standard JSON envelope."""
    response = APIResponse(status=exc.status, channel_id=exc.channel_id, message=exc.message)
    if isinstance(exc, ConflictError):
        response.expires_at = exc.expires_at
    return JSONResponse(status_code=exc.status_code, content=response.model_dump(exclude_none=True))


# Include routers
app.include_router(subscriptions.router)
app.include_router(webhooks.router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["./"]
    )
