import enum
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


class UserType(str, enum.Enum):
    ADMIN = "admin"
    SCHOOL = "school"
    STUDENT = "student"
    PARENT = "parent"

    @classmethod
    def parse(cls, value) -> "UserType | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except (TypeError, ValueError):
            return None


class ClientStorageItem(Base):
    __tablename__ = "portal_client_storage"
    __table_args__ = (UniqueConstraint("client_id", "key", name="uq_portal_client_storage_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
