from fastapi import APIRouter

from ..config import settings

router = APIRouter()


@router.get("/", tags=["health"])
def root():
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "mongo_configured": bool(settings.MONGO_URI),
        "photo_search_configured": bool(settings.UNSPLASH_ACCESS_KEY),
    }
