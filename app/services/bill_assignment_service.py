"""Bill Assignment Service - claims bills for users under a per-user cap

Each attempt runs in its own transaction:

1. lock and re-read the user, then re-count the user's assigned bills;
2. pick the named bill, or scan eligible unassigned bills in claim order;
3. claim with a conditional UPDATE that only matches while the bill is
   still unassigned and in an assignable stage;
4. re-count after the write as a second guard against overshooting the cap.

A lost claim, an overshoot, or a serialization failure reported by the
database rolls the attempt back and starts over, up to the policy's attempt
bound. Business-rule violations are raised immediately and never retried.
"""

from typing import Optional
from uuid import UUID
from sqlalchemy import and_, case, update
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.exceptions import (
    AlreadyAssignedError,
    BillNotFoundError,
    BillTrackerError,
    ConcurrencyConflictError,
    InvalidStageError,
    UserLimitExceededError,
    UserNotFoundError,
)
from app.core.policy import AssignmentPolicy
from app.models.bill import Bill
from app.models.enums import BillStage
from app.services.bill_service import BillService
from app.services.user_service import UserService
from app.utils.time import get_utc_now

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


class ClaimConflict(Exception):
    """Another transaction got there first; the attempt must be retried."""


def is_serialization_failure(exc: DBAPIError) -> bool:
    """True for database errors that mean "retry the transaction"."""
    for err in (exc.orig, getattr(exc.orig, "__cause__", None)):
        if err is None:
            continue
        sqlstate = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if sqlstate in RETRYABLE_SQLSTATES:
            return True
    # SQLite reports writer contention as a locked database
    return "database is locked" in str(exc.orig).lower()


class BillAssignmentService:
    """Service layer for assigning bills to users"""

    @staticmethod
    async def assign_bill(
        db: AsyncSession,
        user_id: UUID,
        bill_id: Optional[UUID] = None,
        policy: Optional[AssignmentPolicy] = None,
    ) -> Bill:
        """
        Assign a bill to a user.

        Args:
            db: Database session with no transaction in progress
            user_id: User receiving the bill
            bill_id: Bill to assign; when omitted the next eligible bill is chosen
            policy: Assignment rules; defaults to the configured policy

        Returns:
            The assigned bill with its assignee loaded

        Raises:
            UserNotFoundError: No such user
            UserLimitExceededError: User already holds the maximum number of bills
            BillNotFoundError: No such bill, or nothing eligible to pick
            InvalidStageError: Bill stage does not allow assignment
            AlreadyAssignedError: Named bill already has an assignee
            ConcurrencyConflictError: Still racing after every attempt
        """
        policy = policy or AssignmentPolicy.from_settings()
        log_ctx = {
            "user_id": str(user_id),
            "bill_id": str(bill_id) if bill_id else None,
        }

        for attempt in range(1, policy.max_attempts + 1):
            try:
                bill = await BillAssignmentService._attempt(db, user_id, bill_id, policy)
                await db.commit()
            except ClaimConflict as exc:
                await db.rollback()
                logger.warning(
                    "Bill assignment conflict",
                    extra={**log_ctx, "attempt": attempt, "reason": str(exc)},
                )
                continue
            except DBAPIError as exc:
                await db.rollback()
                if not is_serialization_failure(exc):
                    raise
                logger.warning(
                    "Bill assignment serialization failure",
                    extra={**log_ctx, "attempt": attempt, "reason": str(exc.orig)},
                )
                continue
            except BillTrackerError as exc:
                await db.rollback()
                logger.info(
                    "Bill assignment rejected",
                    extra={**log_ctx, "attempt": attempt, "code": exc.code},
                )
                raise

            logger.info(
                "Bill assigned",
                extra={**log_ctx, "bill_id": str(bill.id), "attempt": attempt},
            )
            return bill

        logger.warning(
            "Bill assignment gave up after concurrent updates",
            extra={**log_ctx, "attempts": policy.max_attempts},
        )
        raise ConcurrencyConflictError(attempts=policy.max_attempts)

    @staticmethod
    async def _attempt(
        db: AsyncSession,
        user_id: UUID,
        bill_id: Optional[UUID],
        policy: AssignmentPolicy,
    ) -> Bill:
        if policy.isolation_level:
            await db.connection(execution_options={"isolation_level": policy.isolation_level})

        user = await UserService.get_user_by_id(db, user_id, for_update=True)
        if not user:
            raise UserNotFoundError(user_id)

        current = await UserService.count_assigned_bills(db, user_id)
        if not policy.has_capacity(current):
            raise UserLimitExceededError(user_id, policy.max_bills_per_user)

        if bill_id is not None:
            claimed_id = await BillAssignmentService._claim_named(db, user_id, bill_id, policy)
        else:
            claimed_id = await BillAssignmentService._claim_next_eligible(db, user_id, policy)

        after = await UserService.count_assigned_bills(db, user_id)
        if after > policy.max_bills_per_user:
            raise ClaimConflict(f"user holds {after} bills after claim")

        return await BillService.get_bill_by_id(db, claimed_id)

    @staticmethod
    async def _claim_named(
        db: AsyncSession,
        user_id: UUID,
        bill_id: UUID,
        policy: AssignmentPolicy,
    ) -> UUID:
        bill = await BillService.get_bill_by_id(db, bill_id)
        if not bill:
            raise BillNotFoundError(bill_id)
        if not policy.allows(bill.stage):
            raise InvalidStageError(bill.id, bill.stage, policy.assignable_stages)
        if bill.assigned_to_id is not None:
            raise AlreadyAssignedError(bill.id)

        if not await BillAssignmentService._claim(db, bill.id, user_id, policy):
            raise ClaimConflict(f"bill {bill.id} changed before it could be claimed")
        return bill.id

    @staticmethod
    async def _claim_next_eligible(
        db: AsyncSession,
        user_id: UUID,
        policy: AssignmentPolicy,
    ) -> UUID:
        candidates = await BillService.list_assignable_bills(
            db, policy, limit=policy.candidate_scan_limit
        )
        if not candidates:
            raise BillNotFoundError()

        for candidate in candidates:
            if await BillAssignmentService._claim(db, candidate.id, user_id, policy):
                return candidate.id
        raise ClaimConflict(f"all {len(candidates)} scanned candidates were taken")

    @staticmethod
    async def _claim(
        db: AsyncSession,
        bill_id: UUID,
        user_id: UUID,
        policy: AssignmentPolicy,
    ) -> bool:
        """
        Conditionally claim one bill. Returns False when the row no longer
        matches (already claimed or moved out of an assignable stage).

        The submission timestamp is stamped in the same statement, only for
        Submitted bills that have none yet.
        """
        now = get_utc_now()
        result = await db.execute(
            update(Bill)
            .where(
                Bill.id == bill_id,
                Bill.assigned_to_id.is_(None),
                Bill.stage.in_(list(policy.assignable_stages)),
            )
            .values(
                assigned_to_id=user_id,
                submitted_at=case(
                    (
                        and_(Bill.stage == BillStage.SUBMITTED, Bill.submitted_at.is_(None)),
                        now,
                    ),
                    else_=Bill.submitted_at,
                ),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
