from fastapi import APIRouter

from medialinks.config.settings import config
from medialinks.i18n import i18n

router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": config.api.title,
        "version": config.api.version,
        "instagram_upstream": config.instagram.upstream,
    }


@router.get("/health")
async def health_check():
    """Lightweight health check"""
    return {"status": i18n.get("health.status")}
