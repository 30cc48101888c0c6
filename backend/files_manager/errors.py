"""Error taxonomy shared by the services and the HTTP layer."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class FilesManagerError(Exception):
    """Base error. Carries the HTTP status and the message shown to the client."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class Unauthorized(FilesManagerError):
    status_code = 401

    def __init__(self):
        super().__init__("Unauthorized")


class MissingField(FilesManagerError):
    """A required request field is absent or empty."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing {field}")


class InvalidField(FilesManagerError):
    """A request field is present but unusable."""

    _MESSAGES = {
        "type": "Missing or invalid type",
    }

    def __init__(self, field: str):
        self.field = field
        super().__init__(self._MESSAGES.get(field, f"Invalid {field}"))


class ParentNotFound(FilesManagerError):
    def __init__(self):
        super().__init__("Parent not found")


class ParentNotFolder(FilesManagerError):
    def __init__(self):
        super().__init__("Parent is not a folder")


class NotFound(FilesManagerError):
    """Entity absent, or present but hidden from the caller."""

    status_code = 404

    def __init__(self):
        super().__init__("Not found")


class InvalidSize(FilesManagerError):
    def __init__(self):
        super().__init__("Invalid size")


class FolderHasNoContent(FilesManagerError):
    def __init__(self):
        super().__init__("A folder doesn't have content")


class InternalError(FilesManagerError):
    status_code = 500


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"error": message}: our own, HTTP, request validation, and unhandled."""

    @app.exception_handler(FilesManagerError)
    async def files_manager_error_handler(request: Request, exc: FilesManagerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        logger.warning(f"HTTP exception on {request.method} {request.url.path}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Only malformed bodies get here; field checks happen in the services
        logger.warning(f"Invalid request on {request.method} {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
