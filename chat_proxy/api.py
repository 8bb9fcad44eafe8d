"""FastAPI application and route handlers."""

import sys
from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import __version__
from .chat import ChatService
from .config import settings
from .cost import CostGovernor
from .events import StreamEvent, format_sse
from .exceptions import AuthenticationRequired, ChatAPIError
from .middleware import add_request_id, create_token, get_current_user
from .models import ChatRequest
from .pricing import PricingCache
from .reconciler import UsageReconciler
from .refresh import ConfigRefresher
from .relay import StreamingRelay, create_http_client
from .routing import ModelRouter
from .storage import create_repository

_chat_service: ChatService | None = None


def configure_logging() -> None:
    """Configure logging - should be called at startup, not import time."""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=settings.log_level,
        serialize=False,
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="10 MB",
            retention="7 days",
            compression="zip",
            level=settings.log_level,
        )


def get_limiter() -> Limiter:
    """Get or create rate limiter."""
    return Limiter(
        key_func=get_remote_address,
        storage_uri="memory://",
        default_limits=[settings.rate_limit],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global _chat_service
    configure_logging()

    repository = create_repository()
    await repository.startup()

    http_client = create_http_client(settings)
    router = ModelRouter.from_settings(settings)
    pricing = PricingCache(
        http_client,
        models_url=settings.openrouter_models_url,
        api_key=settings.openrouter_api_key,
        max_age_seconds=settings.pricing_cache_seconds,
    )
    governor = CostGovernor(settings.hourly_cost_limit, settings.cost_window_seconds)
    reconciler = UsageReconciler(repository, pricing, governor)
    relay = StreamingRelay(http_client, reconciler.reconcile, settings.stream_timeout_seconds)

    # Routing and pricing must be loaded before the first request
    refresher = ConfigRefresher(repository, router, pricing, settings.config_refresh_seconds)
    await refresher.refresh_all()
    await refresher.start()

    _chat_service = ChatService(
        repository=repository,
        router=router,
        pricing=pricing,
        governor=governor,
        relay=relay,
        preflight_cost_estimate=settings.preflight_cost_estimate,
        default_daily_limit=settings.default_daily_request_limit,
    )

    logger.info("Application started successfully")

    yield

    await refresher.stop()
    await http_client.aclose()
    await repository.shutdown()
    _chat_service = None
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Chat Proxy",
    version=__version__,
    description="Streaming chat proxy in front of multiple LLM providers",
    lifespan=lifespan,
)

app.middleware("http")(add_request_id)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

limiter = get_limiter()
app.state.limiter = limiter  # Required by slowapi
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle validation errors with clean messages."""
    error_messages = []

    for error in exc.errors():  # type: ignore[attr-defined]
        field = error["loc"][-1] if error["loc"] else "field"
        message = error.get("msg", f"Invalid {field}")

        match error["type"]:
            case "missing":
                message = f"Required field '{field}' is missing"
            case "json_invalid":
                message = "Invalid JSON format"

        error_messages.append(message)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Validation failed",
            "message": "; ".join(error_messages),
            "details": error_messages,
        },
    )


app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.exception_handler(ChatAPIError)
async def chat_api_exception_handler(request: Request, exc: ChatAPIError) -> JSONResponse:
    """Handle domain-specific errors."""
    if exc.status_code >= 500:
        logger.error(f"Chat API error: {exc}")
    else:
        logger.warning(f"Request rejected: {exc}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationRequired) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "type": exc.__class__.__name__, "code": exc.code},
        headers=headers,
    )


def get_chat_service() -> ChatService:
    """Get chat service singleton."""
    if _chat_service is None:
        raise RuntimeError("Service not initialized")
    return _chat_service


async def _sse_body(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async with aclosing(events):  # type: ignore[type-var]
        async for event in events:
            yield format_sse(event)


@app.post("/chat/stream", tags=["chat"])
@limiter.limit(settings.rate_limit)
async def chat_stream_endpoint(
    request: Request,
    payload: ChatRequest,
    service: Annotated[ChatService, Depends(get_chat_service)],
    user_id: str = Depends(get_current_user),
) -> StreamingResponse:
    """Stream a chat completion as ``data:`` events."""
    events = await service.open_stream(payload, user_id)
    return StreamingResponse(
        _sse_body(events),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.get("/health", tags=["health"])
async def health_endpoint(
    response: Response,
    service: Annotated[ChatService, Depends(get_chat_service)],
    detailed: bool = Query(False, description="Include detailed configuration information"),
) -> dict[str, Any]:
    """Check health status of all components.

    Args:
        detailed: If True, includes version and cost window information.

    """
    services = await service.health_check()
    all_healthy = all(services.values())

    if not all_healthy:
        response.status_code = 503

    result: dict[str, Any] = {
        "status": "healthy" if all_healthy else "unhealthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "services": services,
    }

    if detailed:
        result["version"] = __version__
        result["environment"] = {
            "routing_entries": len(service.router.routing),
            "priced_models": len(service.pricing),
            "hourly_cost_limit": str(service.governor.limit),
            "rate_limit": settings.rate_limit,
        }

    return result


@app.get("/", tags=["health"])
async def root_endpoint(response: Response) -> dict[str, str]:
    """API information endpoint."""
    return {
        "name": "Chat Proxy",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
    }


@app.post("/login", tags=["auth"])
async def login_endpoint(user_id: str = Body(..., min_length=3, max_length=100)) -> dict[str, str]:
    """Demo login endpoint for testing JWT.

    Args:
        user_id: User identifier to generate token for.

    Returns:
        Dictionary with access_token and token_type.
    """
    token = create_token(user_id)
    return {"access_token": token, "token_type": "bearer"}


app.openapi_tags = [
    {"name": "chat", "description": "Chat operations"},
    {"name": "health", "description": "Health checks"},
    {"name": "auth", "description": "Authentication"},
]
