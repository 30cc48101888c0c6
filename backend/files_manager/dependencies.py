"""FastAPI dependencies resolving the services wired in the app lifespan."""
from typing import Optional

from fastapi import Depends, Header, Request

from files_manager.services.auth import AuthService
from files_manager.services.file_service import FileService


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


async def get_current_user_id(
    x_token: Optional[str] = Header(None),
    auth: AuthService = Depends(get_auth_service),
) -> str:
    """Resolve the `x-token` header to a user id, 401 otherwise."""
    return await auth.resolve_user(x_token)
