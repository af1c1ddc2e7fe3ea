"""Bill endpoints - create, list and assign bills"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.rate_limit import limiter, ASSIGN_RATE_LIMIT
from app.models.bill import Bill
from app.models.enums import BillStage
from app.schemas.bill import (
    BillAssign,
    BillCreate,
    BillResponse,
    ReferenceCheck,
    StageCount,
)
from app.schemas.responses import SuccessResponse
from app.services.bill_assignment_service import BillAssignmentService
from app.services.bill_service import BillService

router = APIRouter()


@router.get("", response_model=SuccessResponse[List[BillResponse]])
async def list_bills(
    stage: Optional[BillStage] = Query(None, description="Only bills in this stage"),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """List all bills, newest first, with their assignee."""
    bills = await BillService.list_bills(db, stage=stage)
    return SuccessResponse(data=[BillResponse.model_validate(b) for b in bills])


@router.post("", response_model=SuccessResponse[BillResponse], status_code=status.HTTP_201_CREATED)
async def create_bill(
    bill_in: BillCreate,
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Create a bill. New bills start in Draft stage and unassigned."""
    bill = await BillService.create_bill(db, bill_in)
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Bill created successfully",
    )


@router.get("/validate", response_model=SuccessResponse[ReferenceCheck])
async def validate_bill_reference(
    bill_reference: str = Query(..., min_length=1),
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Check whether a bill reference is still available."""
    exists = await BillService.reference_exists(db, bill_reference)
    return SuccessResponse(
        data=ReferenceCheck(bill_reference=bill_reference, exists=exists, is_valid=not exists)
    )


@router.get("/assignable", response_model=SuccessResponse[List[BillResponse]])
async def list_assignable_bills(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(deps.get_db),
    policy: deps.AssignmentPolicy = Depends(deps.get_assignment_policy),
) -> Any:
    """Unassigned bills that can be assigned, in the order they would be picked."""
    bills = await BillService.list_assignable_bills(db, policy, limit=limit)
    return SuccessResponse(data=[BillResponse.model_validate(b) for b in bills])


@router.get("/summary", response_model=SuccessResponse[List[StageCount]])
async def bill_stage_summary(
    db: AsyncSession = Depends(deps.get_db),
) -> Any:
    """Number of bills in each stage, in dashboard order."""
    counts = await BillService.stage_counts(db)
    return SuccessResponse(
        data=[StageCount(stage=stage, count=count) for stage, count in counts.items()]
    )


@router.post("/assign", response_model=SuccessResponse[BillResponse])
@limiter.limit(ASSIGN_RATE_LIMIT)
async def assign_bill(
    request: Request,
    body: BillAssign,
    db: AsyncSession = Depends(deps.get_db),
    policy: deps.AssignmentPolicy = Depends(deps.get_assignment_policy),
) -> Any:
    """
    Assign a bill to a user.

    With `bill_id` the named bill is assigned; without it the next eligible
    bill (Submitted queue first, then oldest) is picked.
    """
    bill = await BillAssignmentService.assign_bill(
        db, body.user_id, bill_id=body.bill_id, policy=policy
    )
    return SuccessResponse(
        data=BillResponse.model_validate(bill),
        message="Bill assigned successfully",
    )


@router.get("/{bill_id}", response_model=SuccessResponse[BillResponse])
async def get_bill(
    bill: Bill = Depends(deps.get_bill_or_404),
) -> Any:
    """Get bill by ID."""
    return SuccessResponse(data=BillResponse.model_validate(bill))
