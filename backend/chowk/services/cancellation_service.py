import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chowk.errors import CancellationError, CancellationFailure, TransientError
from chowk.models.application import Application, ApplicationStatus, CANCELLABLE_STATUSES, Party
from chowk.models.identity import Identity
from chowk.models.job import Job, JobStatus
from chowk.services.job_service import JobLedger
from chowk.services.templates import render
from chowk.utils.clock import now_iso

logger = logging.getLogger("chowk.cancellation")


@dataclass
class Cancellation:
    job: Job
    applications: list[Application]


class CancellationService:
    """Withdrawals before attendance is confirmed.

    Capacity consumed by a cancelled acceptance is not handed back: the
    acceptance transaction is the only writer of workers_remaining.
    """

    def __init__(self, db: Session, notifier=None):
        self.db = db
        self.notifier = notifier
        self.jobs = JobLedger(db)

    def _job(self, job_ref: str) -> Job:
        job = self.jobs.resolve(job_ref, statuses=None)
        if job is None:
            raise CancellationError(CancellationFailure.JOB_NOT_FOUND)
        return job

    def cancel_application(
        self,
        job_ref: str,
        worker_phone: str,
        cancelled_by: str,
        requested_by: str | None = None,
    ) -> Cancellation:
        job = self._job(job_ref)
        if cancelled_by == Party.CONTRACTOR and requested_by and requested_by != job.contractor_phone:
            raise CancellationError(CancellationFailure.NOT_JOB_OWNER)

        application = (
            self.db.query(Application)
            .filter(Application.job_id == job.id)
            .filter(Application.worker_phone == worker_phone)
            .first()
        )
        if application is None:
            raise CancellationError(CancellationFailure.APPLICATION_NOT_FOUND)
        if application.status not in CANCELLABLE_STATUSES:
            raise CancellationError(CancellationFailure.NOT_CANCELLABLE)

        stamp = now_iso()
        try:
            # Conditional so a verification landing first wins.
            changed = self.db.execute(
                update(Application)
                .where(Application.id == application.id)
                .where(Application.status.in_(CANCELLABLE_STATUSES))
                .values(
                    status=ApplicationStatus.CANCELLED,
                    cancelled_by=cancelled_by,
                    otp=None,
                    otp_expires_at=None,
                    updated_at=stamp,
                )
                .execution_options(synchronize_session=False)
            ).rowcount
            if changed != 1:
                self.db.rollback()
                raise CancellationError(CancellationFailure.NOT_CANCELLABLE)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("cancellation failed: job %s worker %s", job.id, worker_phone)
            raise TransientError("could not cancel application") from exc

        self.db.refresh(application)
        logger.info("application %s cancelled by %s", application.id, cancelled_by)
        self._notify_other_party(application, job, cancelled_by)
        return Cancellation(job=job, applications=[application])

    def cancel_job(self, job_ref: str, contractor_phone: str) -> Cancellation:
        """Withdraw a whole job and every application not yet confirmed."""
        job = self._job(job_ref)
        if job.contractor_phone != contractor_phone:
            raise CancellationError(CancellationFailure.NOT_JOB_OWNER)
        if job.status == JobStatus.CANCELLED:
            raise CancellationError(CancellationFailure.NOT_CANCELLABLE)

        stamp = now_iso()
        try:
            affected = (
                self.db.query(Application)
                .filter(Application.job_id == job.id)
                .filter(Application.status.in_(CANCELLABLE_STATUSES))
                .all()
            )
            for application in affected:
                application.status = ApplicationStatus.CANCELLED
                application.cancelled_by = Party.CONTRACTOR
                application.otp = None
                application.otp_expires_at = None
                application.updated_at = stamp
            job.status = JobStatus.CANCELLED
            job.updated_at = stamp
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("job cancellation failed: %s", job.id)
            raise TransientError("could not cancel job") from exc

        logger.info("job %s cancelled by contractor (%d application(s) withdrawn)", job.id, len(affected))
        if self.notifier is not None:
            for application in affected:
                worker = self.db.get(Identity, application.worker_phone)
                self.notifier.enqueue(
                    application.worker_phone,
                    render(
                        "job_cancelled_worker",
                        worker.preferred_language if worker else None,
                        title=job.display_title,
                    ),
                )
        return Cancellation(job=job, applications=affected)

    def _notify_other_party(self, application: Application, job: Job, cancelled_by: str) -> None:
        if self.notifier is None:
            return
        worker = self.db.get(Identity, application.worker_phone)
        if cancelled_by == Party.WORKER:
            contractor = self.db.get(Identity, job.contractor_phone)
            self.notifier.enqueue(
                job.contractor_phone,
                render(
                    "cancelled_by_worker",
                    contractor.preferred_language if contractor else None,
                    worker_name=(worker.name if worker else None) or application.worker_phone,
                    title=job.display_title,
                ),
            )
        else:
            self.notifier.enqueue(
                application.worker_phone,
                render(
                    "cancelled_by_contractor",
                    worker.preferred_language if worker else None,
                    title=job.display_title,
                ),
            )
