from fastapi import APIRouter, Depends

from app.api.deps import get_session_store
from app.core.config import settings
from app.infrastructure.cache.session_cache import SessionStore

router = APIRouter()


@router.get("/health")
async def health(sessions: SessionStore = Depends(get_session_store)):
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "environment": settings.ENVIRONMENT,
        "sessions": await sessions.count(),
    }
