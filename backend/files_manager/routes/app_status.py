"""Service status and counters."""
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy import text

from files_manager.dependencies import get_file_service
from files_manager.schemas.common import StatsResponse, StatusResponse
from files_manager.services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
async def get_status(request: Request):
    """Verify database and token store connectivity."""
    db_alive = True
    try:
        async with request.app.state.session_factory() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database check failed: {e}")
        db_alive = False

    redis_alive = await request.app.state.token_store.is_alive()
    return {"db": db_alive, "redis": redis_alive}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    request: Request,
    service: FileService = Depends(get_file_service),
):
    """Number of users and files."""
    return {
        "users": await request.app.state.user_directory.count(),
        "files": await service.count(),
    }
