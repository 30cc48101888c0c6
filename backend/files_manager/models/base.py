"""SQLAlchemy declarative base, shared mixins and id generation."""
import itertools
import os
import random
import threading
import time
from datetime import datetime
from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# 24 hex chars: 4-byte timestamp, 5-byte process token, 3-byte counter.
# Ids generated by one process sort in creation order.
_PROCESS_TOKEN = os.urandom(5).hex()
_counter = itertools.count(random.randint(0, 0x7FFFFF))
_counter_lock = threading.Lock()


def generate_object_id() -> str:
    """Return a new globally unique, sortable 24-char hex identifier."""
    with _counter_lock:
        count = next(_counter) & 0xFFFFFF
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{_PROCESS_TOKEN}{count:06x}"


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class TimestampMixin:
    """Adds created_at column."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class UserMixin:
    """Adds the owning user_id column."""
    user_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
