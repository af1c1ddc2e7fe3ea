"""User Model"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from app.models.base import BaseModel


class User(BaseModel):
    """
    A person bills can be assigned to.
    Holds the back-reference to assigned bills; bills are never owned by the user.
    """
    __tablename__ = "users"

    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)

    # Relationships
    assigned_bills = relationship("Bill", back_populates="assigned_to")

    def __repr__(self) -> str:
        return f"<User {self.email}>"
