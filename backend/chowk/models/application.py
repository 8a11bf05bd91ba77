from sqlalchemy import Column, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from chowk.database import Base


class ApplicationStatus:
    PENDING = "PENDING"
    WORKER_ACCEPTED = "WORKER_ACCEPTED"
    CONTRACTOR_CONFIRMED = "CONTRACTOR_CONFIRMED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# Statuses that hold one unit of a job's capacity.
ACTIVE_STATUSES = (ApplicationStatus.WORKER_ACCEPTED, ApplicationStatus.CONTRACTOR_CONFIRMED)
CANCELLABLE_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.WORKER_ACCEPTED)


class AttendanceStatus:
    NOT_MARKED = "NOT_MARKED"
    PRESENT = "PRESENT"


class Party:
    WORKER = "worker"
    CONTRACTOR = "contractor"


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("job_id", "worker_phone"),)

    id = Column(Text, primary_key=True)
    job_id = Column(Text, ForeignKey("jobs.id"), nullable=False)
    worker_phone = Column(Text, ForeignKey("identities.phone_number"), nullable=False)
    status = Column(Text, nullable=False, default=ApplicationStatus.PENDING)
    otp = Column(Text)
    otp_expires_at = Column(Text)
    attendance_status = Column(Text, nullable=False, default=AttendanceStatus.NOT_MARKED)
    attendance_marked_at = Column(Text)
    cancelled_by = Column(Text)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    job = relationship("Job", back_populates="applications")
    worker = relationship("Identity", back_populates="applications")
