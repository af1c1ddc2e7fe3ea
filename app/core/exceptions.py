"""Domain exceptions mapped to API error responses"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import status

from app.models.enums import BillStage


class BillTrackerError(Exception):
    """
    Base class for failures the API reports with a stable error code.

    Attributes:
        code: Machine-readable error code returned to clients
        status_code: HTTP status the error maps to
        retryable: Whether the same request may succeed later
    """
    code: str = "UNKNOWN_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        self.message = message or self.default_message
        self.details: Dict[str, Any] = details
        super().__init__(self.message)


# Bill assignment: permanent business-rule violations

class UserNotFoundError(BillTrackerError):
    code = "USER_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"

    def __init__(self, user_id: UUID) -> None:
        super().__init__(user_id=str(user_id))


class BillNotFoundError(BillTrackerError):
    code = "BILL_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Bill not found"

    def __init__(self, bill_id: Optional[UUID] = None) -> None:
        if bill_id is None:
            super().__init__("No assignable bill is available")
        else:
            super().__init__(bill_id=str(bill_id))


class UserLimitExceededError(BillTrackerError):
    code = "USER_BILL_LIMIT_EXCEEDED"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, user_id: UUID, limit: int) -> None:
        super().__init__(
            f"User already has the maximum of {limit} bills assigned",
            user_id=str(user_id),
            limit=limit,
        )


class InvalidStageError(BillTrackerError):
    code = "INVALID_BILL_STAGE"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, bill_id: UUID, stage: BillStage, allowed: Any) -> None:
        labels = " or ".join(s.value for s in BillStage if s in allowed)
        super().__init__(
            f"Bill must be in {labels} stage to be assigned",
            bill_id=str(bill_id),
            stage=stage.value,
        )


class AlreadyAssignedError(BillTrackerError):
    code = "BILL_ALREADY_ASSIGNED"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Bill is already assigned"

    def __init__(self, bill_id: UUID) -> None:
        super().__init__(bill_id=str(bill_id))


# Bill assignment: transient

class ConcurrencyConflictError(BillTrackerError):
    code = "CONCURRENT_UPDATE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
    default_message = "Failed to assign bill due to concurrent updates. Please try again."

    def __init__(self, attempts: int) -> None:
        super().__init__(attempts=attempts)


# Bill creation

class DuplicateBillReferenceError(BillTrackerError):
    code = "BILL_REFERENCE_EXISTS"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Bill reference already exists"

    def __init__(self, bill_reference: str) -> None:
        super().__init__(bill_reference=bill_reference)
