"""Queue API package.

This package contains all queue-related API endpoints:
- public_routes: Branches, customer registration, ticket lookup and display board
- staff_routes: Calling, completing and resetting (requires the staff PIN)
"""

from fastapi import APIRouter

from queuedesk.api.v1.queue.public_routes import router as public_router
from queuedesk.api.v1.queue.staff_routes import router as staff_router

# Create a combined router for all queue-related endpoints
router = APIRouter()

router.include_router(public_router)
router.include_router(staff_router)

__all__ = ["router"]
