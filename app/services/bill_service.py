"""Bill Service - bill records, lookups and dashboard counts"""

from typing import Optional, List, Dict
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
import logging

from app.core.exceptions import DuplicateBillReferenceError
from app.core.policy import AssignmentPolicy
from app.models.bill import Bill
from app.models.enums import BillStage
from app.schemas.bill import BillCreate

logger = logging.getLogger(__name__)


class BillService:
    """Service layer for bill-related operations"""

    @staticmethod
    async def get_bill_by_id(db: AsyncSession, bill_id: UUID) -> Optional[Bill]:
        result = await db.execute(
            select(Bill)
            .options(selectinload(Bill.assigned_to))
            .where(Bill.id == bill_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_bills(
        db: AsyncSession,
        stage: Optional[BillStage] = None,
    ) -> List[Bill]:
        """All bills with their assignee, newest first."""
        query = select(Bill).options(selectinload(Bill.assigned_to))
        if stage is not None:
            query = query.where(Bill.stage == stage)
        result = await db.execute(query.order_by(Bill.created_at.desc(), Bill.bill_reference))
        return list(result.scalars().all())

    @staticmethod
    async def reference_exists(db: AsyncSession, bill_reference: str) -> bool:
        found = await db.scalar(
            select(Bill.id).where(Bill.bill_reference == bill_reference)
        )
        return found is not None

    @staticmethod
    async def create_bill(db: AsyncSession, data: BillCreate) -> Bill:
        """
        Create a bill in Draft stage, unassigned.

        Raises:
            DuplicateBillReferenceError: If the reference is already taken
        """
        if await BillService.reference_exists(db, data.bill_reference):
            raise DuplicateBillReferenceError(data.bill_reference)

        bill = Bill(
            bill_reference=data.bill_reference,
            bill_date=data.bill_date,
            stage=BillStage.DRAFT,
        )
        db.add(bill)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race on the unique reference
            await db.rollback()
            raise DuplicateBillReferenceError(data.bill_reference)
        logger.info("Bill created", extra={"bill_id": str(bill.id), "bill_reference": bill.bill_reference})
        return await BillService.get_bill_by_id(db, bill.id)

    @staticmethod
    async def list_assignable_bills(
        db: AsyncSession,
        policy: AssignmentPolicy,
        limit: Optional[int] = None,
    ) -> List[Bill]:
        """
        Unassigned bills in an assignable stage, in claim order.

        Bills with a submission timestamp come first, oldest submission
        first; bills without one follow by creation time.
        """
        query = (
            select(Bill)
            .options(selectinload(Bill.assigned_to))
            .where(
                Bill.assigned_to_id.is_(None),
                Bill.stage.in_(list(policy.assignable_stages)),
            )
            .order_by(
                Bill.submitted_at.asc().nulls_last(),
                Bill.created_at.asc(),
                Bill.id,
            )
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def stage_counts(db: AsyncSession) -> Dict[BillStage, int]:
        """Bill count for every stage, zero-filled, in dashboard order."""
        result = await db.execute(
            select(Bill.stage, func.count(Bill.id)).group_by(Bill.stage)
        )
        found = {stage: count for stage, count in result.all()}
        return {stage: found.get(stage, 0) for stage in BillStage}
