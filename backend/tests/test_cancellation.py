import pytest

from chowk.errors import CancellationError, CancellationFailure, VerificationError
from chowk.models.application import Application, ApplicationStatus, Party
from chowk.models.job import Job, JobStatus
from chowk.services.acceptance_service import AcceptanceService
from chowk.services.attendance_service import AttendanceProtocol
from chowk.services.cancellation_service import CancellationService

CONTRACTOR = "919200000001"
WORKER = "919100000001"


class TestCancelApplication:
    def _accept(self, db, notifier, make_worker, make_job, workers_needed=2):
        make_worker(WORKER, name="Ramesh")
        job_id = make_job(workers_needed=workers_needed, title="House Painting")
        otp = AcceptanceService(db, notifier).accept_job(WORKER, job_id).otp
        notifier.sent.clear()
        return job_id, otp

    def test_worker_cancels_accepted_application(self, db, notifier, make_worker, make_job):
        job_id, _ = self._accept(db, notifier, make_worker, make_job)

        CancellationService(db, notifier).cancel_application(job_id, WORKER, Party.WORKER)

        application = db.query(Application).filter(Application.job_id == job_id).one()
        assert application.status == ApplicationStatus.CANCELLED
        assert application.cancelled_by == Party.WORKER
        assert application.otp is None
        assert "Ramesh cancelled" in notifier.to(CONTRACTOR)[0]
        assert notifier.to(WORKER) == []

    def test_capacity_is_not_restored(self, db, notifier, make_worker, make_job):
        job_id, _ = self._accept(db, notifier, make_worker, make_job, workers_needed=1)
        CancellationService(db, notifier).cancel_application(job_id, WORKER, Party.WORKER)

        job = db.get(Job, job_id)
        assert job.workers_remaining == 0
        assert job.status == JobStatus.FILLED

    def test_contractor_cancels_worker(self, db, notifier, make_worker, make_job):
        job_id, _ = self._accept(db, notifier, make_worker, make_job)

        CancellationService(db, notifier).cancel_application(
            job_id[:8], WORKER, Party.CONTRACTOR, requested_by=CONTRACTOR
        )

        assert "contractor cancelled your job" in notifier.to(WORKER)[0]
        application = db.query(Application).filter(Application.job_id == job_id).one()
        assert application.cancelled_by == Party.CONTRACTOR

    def test_other_contractor_is_refused(self, db, notifier, make_worker, make_job):
        job_id, _ = self._accept(db, notifier, make_worker, make_job)

        with pytest.raises(CancellationError) as exc:
            CancellationService(db, notifier).cancel_application(
                job_id, WORKER, Party.CONTRACTOR, requested_by="919200000099"
            )
        assert exc.value.reason == CancellationFailure.NOT_JOB_OWNER

    def test_cannot_cancel_after_confirmation(self, db, notifier, make_worker, make_job):
        job_id, otp = self._accept(db, notifier, make_worker, make_job)
        AttendanceProtocol(db, notifier).verify_otp(CONTRACTOR, otp)

        with pytest.raises(CancellationError) as exc:
            CancellationService(db, notifier).cancel_application(job_id, WORKER, Party.WORKER)
        assert exc.value.reason == CancellationFailure.NOT_CANCELLABLE

    def test_cancelled_code_no_longer_verifies(self, db, notifier, make_worker, make_job):
        job_id, otp = self._accept(db, notifier, make_worker, make_job)
        CancellationService(db, notifier).cancel_application(job_id, WORKER, Party.WORKER)

        with pytest.raises(VerificationError):
            AttendanceProtocol(db, notifier).verify_otp(CONTRACTOR, otp)

    def test_no_application(self, db, notifier, make_worker, make_job):
        make_worker(WORKER)
        job_id = make_job()
        with pytest.raises(CancellationError) as exc:
            CancellationService(db, notifier).cancel_application(job_id, WORKER, Party.WORKER)
        assert exc.value.reason == CancellationFailure.APPLICATION_NOT_FOUND

    def test_unknown_job(self, db, notifier):
        with pytest.raises(CancellationError) as exc:
            CancellationService(db, notifier).cancel_application("deadbeef", WORKER, Party.WORKER)
        assert exc.value.reason == CancellationFailure.JOB_NOT_FOUND


class TestCancelJob:
    def test_cancels_job_and_unconfirmed_applications(self, db, notifier, make_worker, make_job):
        make_worker(WORKER)
        make_worker("919100000002")
        job_id = make_job(workers_needed=3, title="Wall Putty")
        service = AcceptanceService(db, notifier)
        confirmed_otp = service.accept_job("919100000002", job_id).otp
        service.accept_job(WORKER, job_id)
        AttendanceProtocol(db, notifier).verify_otp(CONTRACTOR, confirmed_otp)
        notifier.sent.clear()

        cancellation = CancellationService(db, notifier).cancel_job(job_id, CONTRACTOR)

        assert [a.worker_phone for a in cancellation.applications] == [WORKER]
        assert db.get(Job, job_id).status == JobStatus.CANCELLED
        statuses = {
            a.worker_phone: a.status
            for a in db.query(Application).filter(Application.job_id == job_id)
        }
        assert statuses == {
            WORKER: ApplicationStatus.CANCELLED,
            "919100000002": ApplicationStatus.CONTRACTOR_CONFIRMED,
        }
        assert "Wall Putty" in notifier.to(WORKER)[0]
        assert notifier.to("919100000002") == []

    def test_only_owner_can_cancel_job(self, db, notifier, make_job):
        job_id = make_job()
        with pytest.raises(CancellationError) as exc:
            CancellationService(db, notifier).cancel_job(job_id, "919200000099")
        assert exc.value.reason == CancellationFailure.NOT_JOB_OWNER
        assert db.get(Job, job_id).status == JobStatus.OPEN

    def test_cancelling_twice_is_refused(self, db, notifier, make_job):
        job_id = make_job()
        service = CancellationService(db, notifier)
        service.cancel_job(job_id, CONTRACTOR)
        with pytest.raises(CancellationError) as exc:
            service.cancel_job(job_id, CONTRACTOR)
        assert exc.value.reason == CancellationFailure.NOT_CANCELLABLE
