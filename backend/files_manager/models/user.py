"""UserRecord model - read-only view of the credential store's users collection."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from files_manager.models.base import Base, TimestampMixin, generate_object_id


class UserRecord(Base, TimestampMixin):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=generate_object_id)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(128), nullable=False)
