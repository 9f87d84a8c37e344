"""IELTS Prep - Services initialization."""
from ieltsprep.services.content import ContentStore
from ieltsprep.services.locks import (
    DistributedLockService,
    LockHandle,
    LockNotAcquired,
    get_lock_service,
)
from ieltsprep.services.mock_test import MockTestService

__all__ = [
    "ContentStore",
    "DistributedLockService",
    "LockHandle",
    "LockNotAcquired",
    "get_lock_service",
    "MockTestService",
]
