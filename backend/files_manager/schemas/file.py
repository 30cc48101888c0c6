"""File request/response schemas."""
from typing import Any, Optional, Union
from pydantic import field_validator
from files_manager.schemas.base import CamelModel, CamelORMModel


class FileCreate(CamelModel):
    # Loosely typed: FileService checks presence and type so each field gets its own 400
    name: Any = None
    type: Any = None
    parent_id: Any = None
    is_public: Any = False
    data: Any = None


class FileResponse(CamelORMModel):
    id: str
    user_id: str
    name: str
    type: str
    is_public: bool
    parent_id: Union[int, str]
    local_path: Optional[str] = None

    @field_validator("parent_id", mode="before")
    @classmethod
    def root_as_zero(cls, v):
        return 0 if v in (None, "0", 0) else v
