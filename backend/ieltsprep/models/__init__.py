"""IELTS Prep - Models initialization."""
from ieltsprep.models.user import User
from ieltsprep.models.content import Content, ContentType, ExamVariant, Module
from ieltsprep.models.mock_test import (
    EvaluationStatus,
    MockTest,
    MockTestStatus,
    SectionResult,
)


__all__ = [
    # User models
    "User",
    # Content models
    "Content",
    "ContentType",
    "ExamVariant",
    "Module",
    # Mock test models
    "MockTest",
    "MockTestStatus",
    "SectionResult",
    "EvaluationStatus",
]
