"""Bill Pydantic Schemas"""

import re
from datetime import date, datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import BillStage
from app.schemas.user import UserBrief
from app.utils.sanitization import sanitize_bill_reference

BILL_REFERENCE_MIN_LENGTH = 5
BILL_REFERENCE_MAX_LENGTH = 100
BILL_REFERENCE_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")


class BillCreate(BaseModel):
    """Schema for creating a bill. New bills start in Draft, unassigned."""
    bill_reference: str = Field(..., description="Letters, numbers and hyphens, 5-100 characters")
    bill_date: date

    @field_validator("bill_reference", mode="before")
    @classmethod
    def clean_reference(cls, v):
        if isinstance(v, str):
            return sanitize_bill_reference(v)
        return v

    @field_validator("bill_reference")
    @classmethod
    def check_reference(cls, v: str) -> str:
        if not v:
            raise ValueError("Bill reference is required")
        if len(v) < BILL_REFERENCE_MIN_LENGTH:
            raise ValueError(f"Bill reference must be at least {BILL_REFERENCE_MIN_LENGTH} characters")
        if len(v) > BILL_REFERENCE_MAX_LENGTH:
            raise ValueError(f"Bill reference must be at most {BILL_REFERENCE_MAX_LENGTH} characters")
        if not BILL_REFERENCE_PATTERN.match(v):
            raise ValueError("Bill reference can only contain letters, numbers, and hyphens")
        return v


class BillAssign(BaseModel):
    """Assign a bill to a user; without bill_id the next eligible bill is chosen."""
    user_id: UUID
    bill_id: Optional[UUID] = None


class StageBrief(BaseModel):
    """Stage detail embedded in bill responses"""
    label: BillStage
    assignable: bool


class BillResponse(BaseModel):
    id: UUID
    bill_reference: str
    bill_date: date
    stage: StageBrief
    assigned_to_id: Optional[UUID] = None
    assigned_to: Optional[UserBrief] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("stage", mode="before")
    @classmethod
    def expand_stage(cls, v):
        if isinstance(v, str):
            stage = BillStage.from_label(v)
            return {"label": stage, "assignable": stage.is_assignable}
        return v


class ReferenceCheck(BaseModel):
    """Result of a bill reference availability check"""
    bill_reference: str
    exists: bool
    is_valid: bool


class StageCount(BaseModel):
    stage: BillStage
    count: int
