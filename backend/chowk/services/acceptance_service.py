"""
Job acceptance.

Capacity is consumed with a single conditional UPDATE so that concurrent
acceptances serialize on the job row: whoever's UPDATE finds
workers_remaining > 0 wins a slot, everyone else updates zero rows and is
told the job is filled. The application row and its OTP are written in
the same transaction, so a slot is never consumed without an application.
"""
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from chowk.errors import AcceptanceError, AcceptanceFailure, TransientError
from chowk.models.application import Application, ApplicationStatus, AttendanceStatus
from chowk.models.identity import Identity, Role
from chowk.models.job import Job, JobStatus
from chowk.services.attendance_service import AttendanceProtocol
from chowk.services.job_service import JobLedger
from chowk.services.templates import render
from chowk.utils.clock import now_iso

logger = logging.getLogger("chowk.acceptance")


@dataclass
class Acceptance:
    application: Application
    job: Job
    worker: Identity
    otp: str

    @property
    def filled(self) -> bool:
        return self.job.status == JobStatus.FILLED


class AcceptanceService:
    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier
        self.jobs = JobLedger(db)
        self.attendance = AttendanceProtocol(db, notifier)

    def _registered_worker(self, worker_phone: str) -> Identity:
        worker = self.db.get(Identity, worker_phone)
        if worker is None or worker.role != Role.WORKER or not worker.is_onboarded:
            raise AcceptanceError(AcceptanceFailure.WORKER_NOT_REGISTERED)
        return worker

    def resolve_job(self, job_ref: str) -> Job:
        # Open jobs first; a unique match among all jobs lets a late
        # acceptance be told the job is filled instead of not found.
        job = self.jobs.resolve(job_ref) or self.jobs.resolve(job_ref, statuses=None)
        if job is None:
            raise AcceptanceError(AcceptanceFailure.JOB_NOT_FOUND)
        return job

    def accept_job(self, worker_phone: str, job_ref: str) -> Acceptance:
        worker = self._registered_worker(worker_phone)
        stamp = now_iso()
        if not worker.is_available(stamp):
            raise AcceptanceError(AcceptanceFailure.WORKER_BUSY, f"busy until {worker.available_from}")
        job = self.resolve_job(job_ref)

        try:
            claimed = self.db.execute(
                update(Job)
                .where(Job.id == job.id)
                .where(Job.status == JobStatus.OPEN)
                .where(Job.workers_remaining > 0)
                .values(
                    workers_remaining=Job.workers_remaining - 1,
                    status=case((Job.workers_remaining - 1 <= 0, JobStatus.FILLED), else_=Job.status),
                    updated_at=stamp,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                self.db.rollback()
                raise AcceptanceError(AcceptanceFailure.JOB_ALREADY_FILLED)

            existing = (
                self.db.query(Application.id)
                .filter(Application.job_id == job.id)
                .filter(Application.worker_phone == worker.phone_number)
                .first()
            )
            if existing is not None:
                self.db.rollback()
                raise AcceptanceError(AcceptanceFailure.ALREADY_APPLIED)

            application = Application(
                id=str(uuid.uuid4()),
                job_id=job.id,
                worker_phone=worker.phone_number,
                status=ApplicationStatus.WORKER_ACCEPTED,
                attendance_status=AttendanceStatus.NOT_MARKED,
                created_at=stamp,
                updated_at=stamp,
            )
            self.db.add(application)
            code = self.attendance.issue_otp(application, job)
            self.db.commit()
        except IntegrityError as exc:
            # Lost a race against this same worker's other acceptance.
            self.db.rollback()
            raise AcceptanceError(AcceptanceFailure.ALREADY_APPLIED) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("acceptance failed: worker %s job %s", worker_phone, job.id)
            raise TransientError("could not record acceptance") from exc

        logger.info(
            "worker %s accepted job %s (%d remaining)", worker.phone_number, job.id, job.workers_remaining
        )
        acceptance = Acceptance(application=application, job=job, worker=worker, otp=code)
        self._notify(acceptance)
        return acceptance

    def _notify(self, acceptance: Acceptance) -> None:
        if self.notifier is None:
            return
        job, worker = acceptance.job, acceptance.worker
        self.attendance.send_otp(worker, job, acceptance.otp)

        contractor = self.db.get(Identity, job.contractor_phone)
        lang = contractor.preferred_language if contractor else None
        self.notifier.enqueue(
            job.contractor_phone,
            render(
                "contractor_worker_accepted",
                lang,
                worker_name=worker.name or worker.phone_number,
                title=job.display_title,
                meeting_point=job.meeting_point or job.location or job.city or "-",
                remaining=job.workers_remaining,
            ),
        )
        if acceptance.filled:
            self.notifier.enqueue(
                job.contractor_phone,
                render("job_filled", lang, workers_needed=job.workers_needed, title=job.display_title),
            )
