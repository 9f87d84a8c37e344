"""
IELTS Prep - Content Model
Passages, recordings and prompts served to mock test sections.

Content is authored elsewhere (admin tooling); this service only reads it.
"""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from ieltsprep.core.database import Base


class Module(str, Enum):
    """The four IELTS modules. Also the mock test sections."""
    LISTENING = "LISTENING"
    READING = "READING"
    WRITING = "WRITING"
    SPEAKING = "SPEAKING"


class ExamVariant(str, Enum):
    """IELTS test type."""
    ACADEMIC = "ACADEMIC"
    GENERAL = "GENERAL"


class ContentType(str, Enum):
    LISTENING_SECTION = "LISTENING_SECTION"
    READING_PASSAGE = "READING_PASSAGE"
    TASK1_ACADEMIC = "TASK1_ACADEMIC"
    TASK1_GENERAL = "TASK1_GENERAL"
    TASK2 = "TASK2"
    SPEAKING_PART1 = "SPEAKING_PART1"
    SPEAKING_PART2 = "SPEAKING_PART2"
    SPEAKING_PART3 = "SPEAKING_PART3"


class Content(Base):
    """A single piece of exam content."""

    __tablename__ = "content"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    module: Mapped[str] = mapped_column(String(20), index=True)
    type: Mapped[str] = mapped_column(String(40), index=True)
    # Null means the item serves both variants
    variant: Mapped[str | None] = mapped_column(String(20), nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Module specific payload: passage/questions, audioUrl/transcript, prompt, cueCard...
    content_data: Mapped[dict] = mapped_column(JSON, default=dict)

    # Answer key for objective modules: { "q1": "true", "q2": ["a", "c"] }
    answers: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    def __repr__(self):
        return f"<Content {self.type} {self.id}>"
