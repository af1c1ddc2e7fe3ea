"""Models Package - Export all models for easy imports"""

from app.models.base import BaseModel
from app.models.enums import BillStage, CapacityStatus, ASSIGNABLE_STAGES
from app.models.user import User
from app.models.bill import Bill


__all__ = [
    # Base classes
    "BaseModel",

    # Enums
    "BillStage",
    "CapacityStatus",
    "ASSIGNABLE_STAGES",

    # Users
    "User",

    # Bills
    "Bill",
]
