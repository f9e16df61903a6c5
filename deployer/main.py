"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from deployer import __version__
from deployer.api.middleware import RequestLoggingMiddleware
from deployer.api.v1.router import router as v1_router
from deployer.config import settings
from deployer.core.engine import get_engine
from deployer.core.exceptions import DeployerError, ValidationError
from deployer.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def bootstrap() -> None:
    """Prepare the filesystem before the first deployment can run."""
    engine = get_engine()
    engine.workspace_root.mkdir(parents=True, exist_ok=True)

    actions = engine.publisher.recover()
    if actions:
        logger.warning("bootstrap.recovered", actions=actions)

    engine.publisher.serving_dir.mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    configure_logging()
    bootstrap()
    logger.info(
        "application.starting",
        version=__version__,
        environment=settings.app_env,
        serving_dir=settings.serving_dir,
    )

    yield

    # Shutdown
    logger.info("application.shutdown")


def _error_response(status_code: int, exc: DeployerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": type(exc).__name__.upper(),
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Static Deployer API",
        description="Builds front-end repositories and publishes them atomically",
        version=__version__,
        docs_url="/docs" if settings.app_debug else None,
        redoc_url="/redoc" if settings.app_debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Reject invalid deployment requests."""
        logger.info("request.rejected", reason=exc.message, path=request.url.path)
        return _error_response(status.HTTP_400_BAD_REQUEST, exc)

    @app.exception_handler(DeployerError)
    async def deployer_error_handler(
        request: Request, exc: DeployerError
    ) -> JSONResponse:
        """Handle application-specific errors."""
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected errors."""
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            exc_info=True,
        )

        content = {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
        if settings.is_development:
            content.update(message=str(exc), type=type(exc).__name__)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": content},
        )

    app.include_router(v1_router)

    # Published site; mounted last so the API routes take precedence
    app.mount(
        settings.serve_path.rstrip("/") or "/",
        StaticFiles(directory=Path(settings.serving_dir), html=True, check_dir=False),
        name="site",
    )

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "deployer.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
