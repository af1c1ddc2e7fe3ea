"""API V1 Router"""

from fastapi import APIRouter

# Import endpoint routers
from app.api.v1.endpoints import bills, users

# Create API v1 router
api_router = APIRouter()

# Include endpoint routers with prefixes and tags
api_router.include_router(bills.router, prefix="/bills", tags=["Bills"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
