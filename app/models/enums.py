"""Centralized Enum Definitions"""

import enum
from typing import FrozenSet


class BillStage(str, enum.Enum):
    """Bill lifecycle stages, declared in dashboard order"""
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    PAYING = "Paying"
    ON_HOLD = "On Hold"
    REJECTED = "Rejected"
    PAID = "Paid"

    @property
    def is_assignable(self) -> bool:
        """Bills may only be assigned while in Draft or Submitted"""
        return self in ASSIGNABLE_STAGES

    @classmethod
    def from_label(cls, label: str) -> "BillStage":
        """Resolve a stage from its display label ("On Hold") or name ("ON_HOLD")"""
        try:
            return cls(label)
        except ValueError:
            try:
                return cls[label.strip().upper().replace(" ", "_")]
            except KeyError:
                raise ValueError(f"Unknown bill stage: {label!r}") from None


ASSIGNABLE_STAGES: FrozenSet[BillStage] = frozenset({BillStage.DRAFT, BillStage.SUBMITTED})


class CapacityStatus(str, enum.Enum):
    """How close a user is to the assignment cap"""
    AVAILABLE = "AVAILABLE"
    NEARLY_FULL = "NEARLY_FULL"
    FULL = "FULL"
