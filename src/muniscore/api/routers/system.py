from fastapi import APIRouter

from muniscore.config import settings

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok", "version": settings.app.version}
