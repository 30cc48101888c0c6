"""Import all models so SQLAlchemy metadata knows about them."""
from files_manager.models.base import Base
from files_manager.models.file_record import FileRecord
from files_manager.models.job import Job
from files_manager.models.user import UserRecord

__all__ = [
    "Base",
    "FileRecord", "Job", "UserRecord",
]
