"""User Pydantic Schemas"""

from datetime import datetime
from uuid import UUID
from pydantic import BaseModel, ConfigDict

from app.models.enums import CapacityStatus


class UserBrief(BaseModel):
    """Minimal user info for embedding in bill responses."""
    id: UUID
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserBrief):
    """Schema for user responses"""
    created_at: datetime


class UserCapacity(BaseModel):
    """How many more bills a user can take"""
    user_id: UUID
    name: str
    email: str
    current_assigned_count: int
    available_slots: int
    capacity_status: CapacityStatus


class UserBillsSummary(BaseModel):
    """Per-user bill totals for the dashboard"""
    user_id: UUID
    name: str
    email: str
    total_bills: int
    total_submitted: int
    total_approved: int
    total_on_hold: int
