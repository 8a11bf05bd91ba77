from sqlalchemy import Boolean, Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from chowk.database import Base


class JobStatus:
    OPEN = "OPEN"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


class Job(Base):
    __tablename__ = "jobs"

    id = Column(Text, primary_key=True)
    contractor_phone = Column(Text, ForeignKey("identities.phone_number"), nullable=False)
    title = Column(Text)
    skill_required = Column(Text, nullable=False)
    wage = Column(Text, nullable=False)
    city = Column(Text)
    location = Column(Text)
    meeting_point = Column(Text)
    # workers_needed is what the contractor asked for; workers_remaining is
    # the capacity counter consumed by acceptances.
    workers_needed = Column(Integer, nullable=False)
    workers_remaining = Column(Integer, nullable=False)
    start_date = Column(Text, nullable=False)
    end_date = Column(Text, nullable=False)
    insurance_provided = Column(Boolean, nullable=False, default=False)
    status = Column(Text, nullable=False, default=JobStatus.OPEN)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    contractor = relationship("Identity", foreign_keys=[contractor_phone])
    applications = relationship("Application", back_populates="job")

    @property
    def display_title(self) -> str:
        return self.title or self.skill_required

    @property
    def short_id(self) -> str:
        return self.id[:8]
