"""User SQLAlchemy model"""

import uuid

from sqlalchemy import Column, Text, Uuid, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship, validates
import re

from .base import Base, UTCDateTime, utcnow


class User(Base):
    """User model representing authenticated operators and reviewers.

    Accounts are provisioned by the external identity service; this table
    only mirrors the identity, role and status needed for authorization.
    """
    __tablename__ = "user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default="OPERATOR")
    status = Column(Text, nullable=False, default="ACTIVE")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    documents = relationship("Document", back_populates="owner")

    __table_args__ = (
        CheckConstraint(
            "role IN ('ADMIN', 'REVIEWER', 'OPERATOR')",
            name='ck_user_role'
        ),
        CheckConstraint(
            "status IN ('ACTIVE', 'DISABLED')",
            name='ck_user_status'
        ),
        UniqueConstraint('email', name='uq_user_email'),
    )

    @validates('email')
    def validate_email(self, key, value):
        """Basic email format validation"""
        if not re.match(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$', value):
            raise ValueError("Invalid email format")
        return value.lower()

    def to_dict(self):
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "status": self.status,
        }
