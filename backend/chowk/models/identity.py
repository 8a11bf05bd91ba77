from sqlalchemy import Boolean, Column, Text
from sqlalchemy.orm import relationship
from chowk.database import Base


class Role:
    WORKER = "worker"
    CONTRACTOR = "contractor"


class Identity(Base):
    """A worker or a contractor, keyed by normalized phone number."""

    __tablename__ = "identities"

    phone_number = Column(Text, primary_key=True)
    role = Column(Text, nullable=False, default=Role.WORKER)
    name = Column(Text)
    city = Column(Text)
    location = Column(Text)
    skill = Column(Text)
    preferred_language = Column(Text, nullable=False, default="en")
    national_id = Column(Text)
    available_from = Column(Text)
    is_onboarded = Column(Boolean, nullable=False, default=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    applications = relationship("Application", back_populates="worker")

    def is_available(self, now: str) -> bool:
        return self.available_from is None or self.available_from <= now
