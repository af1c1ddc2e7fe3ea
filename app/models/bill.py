"""Bill Model"""

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from app.models.base import BaseModel
from app.models.enums import BillStage


class Bill(BaseModel):
    """
    Invoice tracked through its lifecycle stages.
    Assignment to a user is optional and capped per user.
    """
    __tablename__ = "bills"

    bill_reference = Column(String(100), unique=True, nullable=False, index=True)
    bill_date = Column(Date, nullable=False, index=True)
    stage = Column(
        Enum(
            BillStage,
            name="bill_stage",
            values_callable=lambda stages: [s.value for s in stages],
            validate_strings=True,
        ),
        default=BillStage.DRAFT,
        nullable=False,
        index=True,
    )
    submitted_at = Column(DateTime, nullable=True)
    assigned_to_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Relationships
    assigned_to = relationship("User", back_populates="assigned_bills")

    __table_args__ = (
        Index("ix_bills_stage_assigned_to_id", "stage", "assigned_to_id"),
    )

    def __repr__(self) -> str:
        return f"<Bill {self.bill_reference} - {self.stage}>"
