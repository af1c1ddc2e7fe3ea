"""Bill assignment policy"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from app.config import settings
from app.models.enums import ASSIGNABLE_STAGES, BillStage, CapacityStatus


@dataclass(frozen=True)
class AssignmentPolicy:
    """
    Rules the assignment transaction enforces.

    Attributes:
        max_bills_per_user: Cap on bills assigned to one user at any time
        assignable_stages: Stages a bill must be in to be claimed
        max_attempts: Transaction attempts before a conflict is surfaced
        candidate_scan_limit: Candidates examined per attempt when no bill is named
        isolation_level: Transaction isolation for each attempt; None keeps the driver default
    """
    max_bills_per_user: int = 3
    assignable_stages: FrozenSet[BillStage] = ASSIGNABLE_STAGES
    max_attempts: int = 3
    candidate_scan_limit: int = 5
    isolation_level: Optional[str] = "SERIALIZABLE"

    def __post_init__(self) -> None:
        if self.max_bills_per_user < 1:
            raise ValueError("max_bills_per_user must be at least 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.candidate_scan_limit < 1:
            raise ValueError("candidate_scan_limit must be at least 1")
        if not self.assignable_stages:
            raise ValueError("assignable_stages must not be empty")

    def allows(self, stage: BillStage) -> bool:
        return stage in self.assignable_stages

    def has_capacity(self, current_count: int) -> bool:
        return current_count < self.max_bills_per_user

    def remaining_slots(self, current_count: int) -> int:
        return max(0, self.max_bills_per_user - current_count)

    def capacity_status(self, current_count: int) -> CapacityStatus:
        if current_count >= self.max_bills_per_user:
            return CapacityStatus.FULL
        if current_count >= self.max_bills_per_user - 1:
            return CapacityStatus.NEARLY_FULL
        return CapacityStatus.AVAILABLE

    @classmethod
    def from_settings(cls) -> "AssignmentPolicy":
        return cls(
            max_bills_per_user=settings.MAX_BILLS_PER_USER,
            max_attempts=settings.ASSIGNMENT_MAX_ATTEMPTS,
            candidate_scan_limit=settings.ASSIGNMENT_CANDIDATE_SCAN_LIMIT,
            isolation_level=settings.ASSIGNMENT_ISOLATION_LEVEL or None,
        )


def get_assignment_policy() -> AssignmentPolicy:
    """FastAPI dependency returning the configured policy"""
    return AssignmentPolicy.from_settings()
