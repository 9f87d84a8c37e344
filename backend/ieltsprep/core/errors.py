"""
IELTS Prep - Error Taxonomy
Domain exceptions raised by services and rendered by the API layer
"""
from enum import Enum
from typing import Any, Optional

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to clients."""
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    INVALID_STATE = "INVALID_STATE"
    WRONG_SECTION = "WRONG_SECTION"
    CONTENT_UNAVAILABLE = "CONTENT_UNAVAILABLE"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    GRADING_PARSE_FAILED = "GRADING_PARSE_FAILED"
    GRADING_UNAVAILABLE = "GRADING_UNAVAILABLE"
    MOCK_TEST_IN_PROGRESS = "MOCK_TEST_IN_PROGRESS"
    UNKNOWN = "UNKNOWN"


class ExamPrepError(Exception):
    """
    Base class for every domain error.

    Carries enough information for the API layer to render a response
    without knowing which service raised it.
    """

    code: ErrorCode = ErrorCode.UNKNOWN
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong. Please try again later."
    retry: bool = False

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body = {
            "error": self.message,
            "code": self.code.value,
            "retry": self.retry,
        }
        body.update(self.extra)
        return body


class Unauthorized(ExamPrepError):
    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required."


class Forbidden(ExamPrepError):
    code = ErrorCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have access to this resource."


class NotFound(ExamPrepError):
    code = ErrorCode.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Mock test not found."


class InvalidState(ExamPrepError):
    code = ErrorCode.INVALID_STATE
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "This mock test is not in progress."


class WrongSection(ExamPrepError):
    code = ErrorCode.WRONG_SECTION
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "This is not the current section."


class ContentUnavailable(ExamPrepError):
    code = ErrorCode.CONTENT_UNAVAILABLE
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "No content is available for this section."


class DuplicateSubmission(ExamPrepError):
    code = ErrorCode.DUPLICATE_SUBMISSION
    status_code = status.HTTP_409_CONFLICT
    default_message = "This section is already being evaluated. Please try again shortly."
    retry = True


class ValidationFailed(ExamPrepError):
    code = ErrorCode.VALIDATION_FAILED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Please check your input and try again."


class MockTestInProgress(ExamPrepError):
    code = ErrorCode.MOCK_TEST_IN_PROGRESS
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "You already have a mock test in progress."


class EvaluationError(ExamPrepError):
    """Failures inside the evaluation pipeline. Never escape the pipeline."""


class TranscriptionFailed(EvaluationError):
    code = ErrorCode.TRANSCRIPTION_FAILED
    status_code = 422
    default_message = "Could not transcribe audio. Please speak clearly and try again."


class GradingParseFailed(EvaluationError):
    code = ErrorCode.GRADING_PARSE_FAILED
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "We received an unexpected response from the grading service."
    retry = True


class GradingUnavailable(EvaluationError):
    code = ErrorCode.GRADING_UNAVAILABLE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "The evaluation service is temporarily unavailable. Please try again later."
    retry = True
