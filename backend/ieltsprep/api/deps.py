"""
IELTS Prep - API Dependencies
FastAPI dependencies for authentication and service wiring
"""
import uuid
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ieltsprep.ai.pipeline import EvaluationPipeline, get_evaluation_pipeline
from ieltsprep.core.database import get_db
from ieltsprep.core.errors import Forbidden, Unauthorized
from ieltsprep.core.security import verify_token
from ieltsprep.models.user import User
from ieltsprep.services.locks import DistributedLockService, get_lock_service
from ieltsprep.services.mock_test import Clock, MockTestService, utc_now

# Security scheme; missing credentials are reported as Unauthorized below
security = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DbSession,
) -> User:
    """
    Get current authenticated user from JWT token.

    Raises:
        Unauthorized: missing, invalid or expired token, or unknown user
        Forbidden: deactivated account
    """
    if credentials is None:
        raise Unauthorized()

    subject = verify_token(credentials.credentials, token_type="access")
    if not subject:
        raise Unauthorized("Invalid or expired token")

    try:
        user_id = uuid.UUID(subject)
    except ValueError:
        raise Unauthorized("Invalid or expired token")

    user = await db.get(User, user_id)
    if user is None:
        raise Unauthorized("User not found")
    if not user.is_active:
        raise Forbidden("Account is deactivated")

    return user


def get_clock() -> Clock:
    return utc_now


def get_mock_test_service(
    db: DbSession,
    lock_service: Annotated[DistributedLockService, Depends(get_lock_service)],
    pipeline: Annotated[EvaluationPipeline, Depends(get_evaluation_pipeline)],
    clock: Annotated[Clock, Depends(get_clock)],
) -> MockTestService:
    return MockTestService(db, lock_service=lock_service, pipeline=pipeline, clock=clock)


# Type aliases for common dependencies
CurrentUser = Annotated[User, Depends(get_current_user)]
MockTests = Annotated[MockTestService, Depends(get_mock_test_service)]
