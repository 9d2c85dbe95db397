from fastapi import FastAPI
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from config.config import settings, tags_metadata

from common.logging import setup_logging, get_logger
from common.middleware import setup_exception_handlers, setup_middleware

setup_logging(
    level=settings.log_level,
    format_type=settings.log_format,
    log_file=settings.log_file,
)

limiter = Limiter(
    key_func=get_remote_address,
    headers_enabled=True,
    default_limits=[settings.rate_limit_default],
    storage_uri=settings.rate_limit_storage_uri,
    enabled=settings.rate_limit_enabled,
)

logger = get_logger("main")

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Helpers for request handlers: uploads, slugs, random strings and JSON envelopes",
    openapi_tags=tags_metadata,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

setup_middleware(app)
setup_exception_handlers(app)

@app.get("/",
    summary="Root endpoint",
    description="Simple health check and API info"
)
async def root():
    """Root endpoint for basic health check."""
    return {
        "message": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "docs": "/docs",
        "redoc": "/redoc"
    }

# Import routers
from api.health import router as health_router
from api.uploads import router as uploads_router
from api.utilities import router as utilities_router

# Include all routers with v1 prefix
app.include_router(health_router, prefix="/v1")
app.include_router(uploads_router, prefix="/v1")
app.include_router(utilities_router, prefix="/v1")

logger.info("Application configured", extra={"upload_dir": settings.upload_dir})

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
