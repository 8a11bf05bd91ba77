"""
OTP-based attendance.

The worker receives a six-digit code when they accept a job and reads it
out to the contractor on site. The contractor sends it back; a match on
(code, live status, unexpired, contractor's own job) is the only way an
application reaches CONTRACTOR_CONFIRMED. Expiry is checked on read, so
nothing sweeps stale codes.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chowk.config import settings
from chowk.errors import TransientError, VerificationError, VerificationFailure
from chowk.models.application import Application, ApplicationStatus, AttendanceStatus
from chowk.models.identity import Identity
from chowk.models.job import Job, JobStatus
from chowk.services.job_service import JobLedger
from chowk.services.templates import render
from chowk.services.throttle_service import (
    get_throttle_delay,
    record_failed_attempt,
    reset_failed_attempts,
)
from chowk.utils.clock import end_of_day_iso, now_iso, to_iso, utc_now
from chowk.utils.security import generate_otp

logger = logging.getLogger("chowk.attendance")

MAX_CODE_DRAWS = 10


@dataclass
class Verification:
    application: Application
    job: Job
    worker: Identity


class AttendanceProtocol:
    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier

    def _code_in_use(self, contractor_phone: str, code: str, application_id: str) -> bool:
        return (
            self.db.query(Application.id)
            .join(Job, Job.id == Application.job_id)
            .filter(Job.contractor_phone == contractor_phone)
            .filter(Application.otp == code)
            .filter(Application.status == ApplicationStatus.WORKER_ACCEPTED)
            .filter(Application.id != application_id)
            .first()
            is not None
        )

    def issue_otp(self, application: Application, job: Job, now: datetime | None = None) -> str:
        """Stage a fresh code on the application, replacing any earlier one.

        The code is kept distinct from the other live codes of the same
        contractor so a verification can only ever match one application.
        """
        for _ in range(MAX_CODE_DRAWS):
            code = generate_otp()
            if not self._code_in_use(job.contractor_phone, code, application.id):
                break
        moment = now or utc_now()
        application.otp = code
        application.otp_expires_at = to_iso(moment + timedelta(seconds=settings.otp_ttl_seconds))
        application.updated_at = to_iso(moment)
        logger.info("OTP issued for application %s (job %s)", application.id, job.id)
        return code

    def send_otp(self, worker: Identity, job: Job, code: str) -> None:
        if self.notifier is None:
            return
        self.notifier.enqueue(
            worker.phone_number,
            render(
                "accept_otp",
                worker.preferred_language,
                title=job.display_title,
                otp=code,
                meeting_point=job.meeting_point or job.location or job.city or "-",
            ),
        )

    def reissue_otp(self, worker_phone: str, job: Job) -> str | None:
        """New code for a worker who accepts a job they already accepted."""
        application = (
            self.db.query(Application)
            .filter(Application.job_id == job.id)
            .filter(Application.worker_phone == worker_phone)
            .filter(Application.status == ApplicationStatus.WORKER_ACCEPTED)
            .first()
        )
        if application is None:
            return None
        try:
            code = self.issue_otp(application, job)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransientError("could not reissue OTP") from exc
        self.send_otp(application.worker, job, code)
        return code

    def verify_otp(self, contractor_phone: str, code: str, now: datetime | None = None) -> Verification:
        throttle_key = f"otp:{contractor_phone}"
        delay = get_throttle_delay(self.db, throttle_key)
        if delay > 0:
            raise VerificationError(VerificationFailure.TOO_MANY_ATTEMPTS, retry_after_seconds=delay)

        stamp = to_iso(now or utc_now())
        code = code.strip()
        try:
            application = (
                self.db.query(Application)
                .join(Job, Job.id == Application.job_id)
                .filter(Application.otp == code)
                .filter(Application.status == ApplicationStatus.WORKER_ACCEPTED)
                .filter(Application.otp_expires_at >= stamp)
                .filter(Job.contractor_phone == contractor_phone)
                .first()
            )
            if application is None:
                # Wrong, expired and already-used codes are indistinguishable to the caller.
                record_failed_attempt(self.db, throttle_key)
                self.db.commit()
                raise VerificationError(VerificationFailure.INVALID_OR_EXPIRED_CODE)

            job = self.db.get(Job, application.job_id)
            worker = self.db.get(Identity, application.worker_phone)
            self.db.refresh(worker)
            if _overlaps_booking(worker.available_from, job.start_date, stamp):
                logger.info(
                    "worker %s already booked until %s, job %s starts %s",
                    worker.phone_number, worker.available_from, job.id, job.start_date,
                )
                self.db.rollback()
                raise VerificationError(VerificationFailure.WORKER_BUSY)

            # Conditional on the code still being there: a concurrent
            # verification of the same code updates zero rows here.
            claimed = self.db.execute(
                update(Application)
                .where(Application.id == application.id)
                .where(Application.status == ApplicationStatus.WORKER_ACCEPTED)
                .where(Application.otp == code)
                .values(
                    status=ApplicationStatus.CONTRACTOR_CONFIRMED,
                    attendance_status=AttendanceStatus.PRESENT,
                    attendance_marked_at=stamp,
                    otp=None,
                    otp_expires_at=None,
                    updated_at=stamp,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                self.db.rollback()
                raise VerificationError(VerificationFailure.INVALID_OR_EXPIRED_CODE)

            # Busy until the later of the two bookings; never shortened.
            worker.available_from = max(worker.available_from or "", end_of_day_iso(job.end_date))
            worker.updated_at = stamp

            if job.status == JobStatus.OPEN and JobLedger(self.db).confirmed_count(job.id) >= job.workers_needed:
                job.status = JobStatus.FILLED
                job.updated_at = stamp

            reset_failed_attempts(self.db, throttle_key)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("OTP verification failed for contractor %s", contractor_phone)
            raise TransientError("could not verify OTP") from exc

        self.db.refresh(application)
        logger.info("attendance marked: worker %s on job %s", worker.phone_number, job.id)

        if self.notifier is not None:
            self.notifier.enqueue(
                worker.phone_number,
                render(
                    "attendance_confirmed_worker",
                    worker.preferred_language,
                    title=job.display_title,
                    start_date=job.start_date,
                    end_date=job.end_date,
                    wage=job.wage,
                ),
            )
        return Verification(application=application, job=job, worker=worker)


def _overlaps_booking(available_from: str | None, start_date: str, now: str) -> bool:
    """True when an existing confirmed booking runs into a job starting on start_date."""
    if not available_from or available_from <= now:
        return False
    return available_from >= f"{start_date}T00:00:00Z"


def otp_is_live(application: Application, now: str | None = None) -> bool:
    return (
        application.otp is not None
        and application.status == ApplicationStatus.WORKER_ACCEPTED
        and (application.otp_expires_at or "") >= (now or now_iso())
    )
