"""User endpoints"""

from typing import Any, List
from uuid import UUID
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.user import User
from app.schemas.responses import SuccessResponse
from app.schemas.user import UserBillsSummary, UserCapacity, UserResponse
from app.services.user_service import UserService

router = APIRouter()


@router.get("", response_model=SuccessResponse[List[UserResponse]])
async def list_users(
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """List all users, newest first."""
    users = await UserService.list_users(db)
    return SuccessResponse(data=[UserResponse.model_validate(u) for u in users])


@router.get("/summary", response_model=SuccessResponse[List[UserBillsSummary]])
async def users_bills_summary(
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Per-user bill totals for the dashboard."""
    rows = await UserService.bills_summary(db)
    return SuccessResponse(data=[UserBillsSummary(**row) for row in rows])


@router.get("/{user_id}", response_model=SuccessResponse[UserResponse])
async def get_user(
    user: User = Depends(deps.get_user_or_404),
) -> Any:
    """Get user by ID."""
    return SuccessResponse(data=UserResponse.model_validate(user))


@router.get("/{user_id}/capacity", response_model=SuccessResponse[UserCapacity])
async def get_user_capacity(
    user_id: UUID,
    db: AsyncSession = Depends(deps.get_db),
    policy: deps.AssignmentPolicy = Depends(deps.get_assignment_policy),
) -> Any:
    """How many more bills the user can be assigned."""
    capacity = await UserService.get_capacity(db, user_id, policy)
    if capacity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return SuccessResponse(data=UserCapacity(**capacity))
