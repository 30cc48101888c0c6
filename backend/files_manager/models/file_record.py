"""FileRecord model - file and folder metadata (bytes live in the blob store)."""
from sqlalchemy import String, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column
from files_manager.models.base import Base, TimestampMixin, UserMixin, generate_object_id

ROOT_PARENT_ID = "0"

FOLDER = "folder"
FILE = "file"
IMAGE = "image"
FILE_TYPES = (FOLDER, FILE, IMAGE)


class FileRecord(Base, TimestampMixin, UserMixin):
    __tablename__ = "files"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=generate_object_id)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_id: Mapped[str] = mapped_column(String(24), default=ROOT_PARENT_ID, nullable=False)
    local_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    __table_args__ = (
        Index("idx_files_user_parent", "user_id", "parent_id"),
    )

    @property
    def is_folder(self) -> bool:
        return self.type == FOLDER
