"""IELTS Prep - API v1 Router."""
from fastapi import APIRouter

from ieltsprep.api.v1.mock_tests import router as mock_tests_router

api_router = APIRouter()

api_router.include_router(mock_tests_router)
