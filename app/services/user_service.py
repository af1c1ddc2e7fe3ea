"""User Service - Business Logic Layer"""

from typing import Optional, List, Dict, Any
from uuid import UUID
from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.policy import AssignmentPolicy
from app.models.bill import Bill
from app.models.enums import BillStage
from app.models.user import User

logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user-related operations"""

    @staticmethod
    async def get_user_by_id(
        db: AsyncSession,
        user_id: UUID,
        for_update: bool = False,
    ) -> Optional[User]:
        """
        Get user by ID.

        Args:
            db: Database session
            user_id: User ID
            for_update: Lock the row for the rest of the transaction (ignored by SQLite)

        Returns:
            User or None if not found
        """
        query = select(User).where(User.id == user_id)
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_users(db: AsyncSession) -> List[User]:
        """All users, newest first."""
        result = await db.execute(
            select(User).order_by(User.created_at.desc(), User.email)
        )
        return list(result.scalars().all())

    @staticmethod
    async def create_user(
        db: AsyncSession,
        name: str,
        email: str,
        auto_commit: bool = True,
    ) -> User:
        """
        Create a user. When auto_commit=False, uses flush instead of commit (for seeding).
        """
        user = User(name=name, email=email)
        db.add(user)
        if auto_commit:
            await db.commit()
            await db.refresh(user)
        else:
            await db.flush()
        return user

    @staticmethod
    async def count_assigned_bills(db: AsyncSession, user_id: UUID) -> int:
        """Number of bills currently assigned to the user."""
        count = await db.scalar(
            select(func.count(Bill.id)).where(Bill.assigned_to_id == user_id)
        )
        return count or 0

    @staticmethod
    async def get_capacity(
        db: AsyncSession,
        user_id: UUID,
        policy: AssignmentPolicy,
    ) -> Optional[Dict[str, Any]]:
        """
        Assignment capacity for one user, or None if the user does not exist.
        """
        user = await UserService.get_user_by_id(db, user_id)
        if not user:
            return None
        current = await UserService.count_assigned_bills(db, user_id)
        return {
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "current_assigned_count": current,
            "available_slots": policy.remaining_slots(current),
            "capacity_status": policy.capacity_status(current),
        }

    @staticmethod
    async def bills_summary(db: AsyncSession) -> List[Dict[str, Any]]:
        """
        Per-user totals of assigned bills, broken down by the stages the
        dashboard tracks (Submitted, Approved, On Hold).
        """
        def _stage_count(stage: BillStage):
            return func.coalesce(func.sum(case((Bill.stage == stage, 1), else_=0)), 0)

        result = await db.execute(
            select(
                User.id,
                User.name,
                User.email,
                func.count(Bill.id),
                _stage_count(BillStage.SUBMITTED),
                _stage_count(BillStage.APPROVED),
                _stage_count(BillStage.ON_HOLD),
            )
            .outerjoin(Bill, Bill.assigned_to_id == User.id)
            .group_by(User.id, User.name, User.email)
            .order_by(User.name, User.email)
        )
        return [
            {
                "user_id": row[0],
                "name": row[1],
                "email": row[2],
                "total_bills": row[3],
                "total_submitted": row[4],
                "total_approved": row[5],
                "total_on_hold": row[6],
            }
            for row in result.all()
        ]
