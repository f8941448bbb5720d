"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import init_db, close_db, async_session
from .errors import ConfigurationError, GatewayError, NotFoundError
from .routers import push_router
from .services.push_gateway import PushGatewayClient
from .services.push_service import PushConfig, PushNotificationService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_push_service(gateway: PushGatewayClient) -> PushNotificationService | None:
    """Create the push service, or None when SNS is not configured.

    Without a platform application and topic the API still starts; push
    routes answer 503 and /api/push/config reports what is missing.
    """
    try:
        return PushNotificationService(PushConfig.from_settings(settings), gateway, async_session)
    except ConfigurationError as e:
        logger.warning(f"SNS configuration incomplete - push notifications disabled: {e}")
        return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting Push Relay")

    await init_db()
    logger.info("Database initialized")

    app.state.push_gateway = PushGatewayClient.from_settings(settings)
    app.state.push_service = build_push_service(app.state.push_gateway)

    yield

    await close_db()
    logger.info("Shutdown complete")


def register_exception_handlers(app: FastAPI):
    """Map push relay errors to HTTP responses."""

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": exc.message})

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=502,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": exc.message})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Push Relay",
        description="Device registration and push notification relay over AWS SNS",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.push_gateway = None
    app.state.push_service = None

    register_exception_handlers(app)
    app.include_router(push_router)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "push": app.state.push_service is not None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)
