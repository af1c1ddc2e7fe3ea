"""API Dependencies"""

from uuid import UUID
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.policy import AssignmentPolicy, get_assignment_policy
from app.database import get_db
from app.models.bill import Bill
from app.models.user import User
from app.services.bill_service import BillService
from app.services.user_service import UserService

__all__ = [
    "get_db",
    "get_assignment_policy",
    "AssignmentPolicy",
    "get_bill_or_404",
    "get_user_or_404",
]


async def get_bill_or_404(
    bill_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Bill:
    """
    Resolve the bill named in the path.

    Raises:
        HTTPException: If the bill does not exist
    """
    bill = await BillService.get_bill_by_id(db, bill_id)
    if not bill:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Bill not found"
        )
    return bill


async def get_user_or_404(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolve the user named in the path.

    Raises:
        HTTPException: If the user does not exist
    """
    user = await UserService.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user
