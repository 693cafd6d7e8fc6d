"""
Admin API endpoints.

Instructor and operator endpoints. All endpoints require authentication via
the X-Admin-Token header.

Submodules:
    - tests: Test definition create/replace
    - enrollments: Class enrollment
    - attempts: Attempt monitoring and the manual expiry sweep
"""
from fastapi import APIRouter

from . import attempts, enrollments, tests

# Create the main admin router
router = APIRouter()

router.include_router(
    tests.router,
    tags=["Admin - Tests"],
)

router.include_router(
    enrollments.router,
    tags=["Admin - Enrollments"],
)

router.include_router(
    attempts.router,
    tags=["Admin - Attempts"],
)
