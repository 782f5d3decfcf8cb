"""
FastAPI application entry point for the Mechinweb portal backend.

Run with:
    uvicorn src.webapp.main:app --reload

Open: http://127.0.0.1:8000/docs
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.utils.logging_config import setup_logging
from src.webapp.exceptions import AppException
from src.webapp.middleware import RateLimitConfig, RateLimitMiddleware
from src.webapp.routes import get_app_config, router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    config = get_app_config()
    setup_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        log_file=config.paths.log_path(config.logging.file),
    )
    logger.info(f"{config.server.title} starting on {config.server.host}:{config.server.port}")
    yield
    logger.info(f"{config.server.title} shutting down...")


def create_app() -> FastAPI:
    """Build the application with middleware and routes."""
    config = get_app_config()

    application = FastAPI(
        title=config.server.title,
        description="Currency localization, service pricing and quote handling for the Mechinweb portal",
        version="1.0.0",
        lifespan=lifespan,
    )

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
        else:
            logger.info(f"{exc.error_code} on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @application.middleware("http")
    async def error_handling_middleware(request: Request, call_next):
        """Global error handling middleware."""
        start_time = time.time()
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = str(process_time)
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.exception(f"Unhandled error processing {request.url.path}: {e}")
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": str(e) if application.debug else "An unexpected error occurred",
                    "details": {"path": str(request.url.path)},
                },
                headers={"X-Process-Time": str(process_time)},
            )

    rate_limit_config = RateLimitConfig(
        enabled=config.server.rate_limit_enabled,
        form_rpm=config.server.form_rpm,
        api_rpm=config.server.api_rpm,
    )
    application.add_middleware(RateLimitMiddleware, config=rate_limit_config)

    application.include_router(router)
    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    server = get_app_config().server
    uvicorn.run("src.webapp.main:app", host=server.host, port=server.port, reload=True)
