"""
IELTS Prep - User Model
Minimal account record; registration and login live in the account service
"""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ieltsprep.core.database import Base

if TYPE_CHECKING:
    from ieltsprep.models.mock_test import MockTest


class User(Base):
    """Candidate account that owns mock test attempts."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Account status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    # Relationships
    mock_tests: Mapped[list["MockTest"]] = relationship(
        "MockTest",
        back_populates="user",
        cascade="all, delete-orphan"
    )
