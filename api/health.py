from fastapi import APIRouter

from config.config import settings

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/status",
    summary="Application health status",
    description="Basic health check endpoint"
)
def health_status():
    return {"status": "healthy", "service": settings.app_name, "version": settings.app_version}
