"""Files API routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import StreamingResponse

from files_manager.dependencies import get_current_user_id, get_file_service
from files_manager.models.file_record import FileRecord
from files_manager.schemas.common import ErrorResponse
from files_manager.schemas.file import FileCreate, FileResponse
from files_manager.services.file_service import FileService

router = APIRouter(
    prefix="/files",
    tags=["files"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)


@router.post("", response_model=FileResponse, status_code=201)
async def upload_file(
    body: Optional[FileCreate] = None,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Create a folder, or upload a file/image from base64 `data`."""
    body = body or FileCreate()
    file = await service.create(
        user_id=user_id,
        name=body.name,
        type=body.type,
        parent_id=body.parent_id,
        is_public=body.is_public,
        data=body.data,
    )
    return _to_response(file)


@router.get("", response_model=list[FileResponse])
async def list_files(
    parent_id: Optional[str] = Query(None, alias="parentId"),
    page: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """List the caller's files, 20 per page."""
    files = await service.list_files(user_id, parent_id=parent_id, page=_parse_page(page))
    return [_to_response(f) for f in files]


@router.get("/{file_id}", response_model=FileResponse)
async def get_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    """Get a file's metadata. Owner only."""
    return _to_response(await service.get_by_id(user_id, file_id))


@router.put("/{file_id}/publish", response_model=FileResponse)
async def publish_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    return _to_response(await service.set_public(user_id, file_id, True))


@router.put("/{file_id}/unpublish", response_model=FileResponse)
async def unpublish_file(
    file_id: str,
    user_id: str = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    return _to_response(await service.set_public(user_id, file_id, False))


@router.get("/{file_id}/data")
async def download_file(
    file_id: str,
    size: Optional[str] = Query(None),
    x_token: Optional[str] = Header(None),
    service: FileService = Depends(get_file_service),
):
    """Stream a file's content (or a thumbnail width). Public files need no token."""
    content = await service.get_content(file_id, token=x_token, size=size)
    return StreamingResponse(content.chunks, media_type=content.content_type)


def _parse_page(page: Optional[str]) -> int:
    try:
        return max(int(page), 0) if page else 0
    except ValueError:
        return 0


def _to_response(file: FileRecord) -> dict:
    """Convert SQLAlchemy model to response dict."""
    return {
        "id": file.id,
        "user_id": file.user_id,
        "name": file.name,
        "type": file.type,
        "is_public": file.is_public,
        "parent_id": file.parent_id,
        "local_path": file.local_path,
    }
