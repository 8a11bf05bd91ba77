"""
Inbound chat message routing.

A message first continues whatever flow the sender is in. Without a flow,
a keyword intent picks the route. Everything a user can get wrong becomes
a reply; only infrastructure failures become the generic apology.
"""
import logging
import math
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chowk.errors import (
    AcceptanceError,
    AcceptanceFailure,
    CancellationError,
    CancellationFailure,
    TransientError,
    VerificationError,
    VerificationFailure,
)
from chowk.models.application import Application, ApplicationStatus, Party
from chowk.models.identity import Role
from chowk.models.job import Job
from chowk.services.acceptance_service import AcceptanceService
from chowk.services.attendance_service import AttendanceProtocol
from chowk.services.cancellation_service import CancellationService
from chowk.services.conversation_service import ConversationFlows
from chowk.services.identity_service import IdentityDirectory
from chowk.services.job_service import JobLedger
from chowk.services.language_service import Intent, IdCardReader, IntentResult, classify, detect_language
from chowk.services.matching_service import MatchingEngine
from chowk.services.templates import render
from chowk.utils.phone import normalize_phone

logger = logging.getLogger("chowk.messages")

ACCEPTANCE_DENIALS = {
    AcceptanceFailure.JOB_NOT_FOUND: "job_not_found",
    AcceptanceFailure.JOB_ALREADY_FILLED: "job_already_filled",
    AcceptanceFailure.ALREADY_APPLIED: "already_applied",
    AcceptanceFailure.WORKER_NOT_REGISTERED: "not_registered",
}

CANCELLATION_DENIALS = {
    CancellationFailure.JOB_NOT_FOUND: "job_not_found",
    CancellationFailure.NOT_CANCELLABLE: "cancel_not_allowed",
    CancellationFailure.APPLICATION_NOT_FOUND: "cancel_not_found",
    CancellationFailure.NOT_JOB_OWNER: "cancel_not_found",
}


class MessageService:
    def __init__(
        self,
        db: Session,
        notifier,
        id_reader: IdCardReader | None = None,
        on_job_posted: Callable[[Job], None] | None = None,
    ):
        self.db = db
        self.notifier = notifier
        self.identities = IdentityDirectory(db)
        self.flows = ConversationFlows(db, id_reader=id_reader, on_job_posted=on_job_posted or self._match_now)
        self._routes = {
            Intent.GREETING: self._register,
            Intent.POST_JOB: self._post_job,
            Intent.ACCEPT_JOB: self._accept,
            Intent.VERIFY_OTP: self._verify,
            Intent.CANCEL: self._cancel,
            Intent.LIST_JOBS: self._list_jobs,
            Intent.JOB_DETAILS: self._job_details,
        }

    def _match_now(self, job: Job) -> None:
        MatchingEngine(self.db).match_and_notify(job, self.notifier)

    def handle_inbound(self, sender: str, text: str | None = None, image: bytes | None = None) -> str:
        phone = normalize_phone(sender)
        text = (text or "").strip()
        lang = detect_language(text)
        try:
            identity = self.identities.get(phone)
            if identity is not None:
                lang = identity.preferred_language
            return self._route(phone, text, image, lang)
        except (SQLAlchemyError, TransientError):
            self.db.rollback()
            logger.exception("message from %s could not be handled", phone)
            return render("apology", lang)

    def _route(self, phone: str, text: str, image: bytes | None, lang: str) -> str:
        reply = self.flows.handle_reply(phone, text, image)
        if reply is not None:
            return reply
        if image:
            return render("image_unexpected", lang)

        result = classify(text)
        logger.debug("intent for %s: %s", phone, result.intent)
        route = self._routes.get(result.intent)
        if route is None:
            return render("help", lang)
        return route(phone, text, result, lang)

    def _register(self, phone, text, result: IntentResult, lang) -> str:
        return self.flows.begin(phone, Role.WORKER, text)

    def _post_job(self, phone, text, result: IntentResult, lang) -> str:
        return self.flows.begin(phone, Role.CONTRACTOR, text)

    def _accept(self, phone, text, result: IntentResult, lang) -> str:
        job_ref = result.job_ref
        if job_ref is None:
            worker = self.identities.get(phone)
            if worker is None or worker.role != Role.WORKER or not worker.is_onboarded:
                return render("not_registered", lang)
            job = MatchingEngine(self.db).find_recent_job_for_worker(worker)
            if job is None:
                return render("no_recent_job", lang)
            job_ref = job.id

        try:
            AcceptanceService(self.db, self.notifier).accept_job(phone, job_ref)
        except AcceptanceError as exc:
            if exc.reason == AcceptanceFailure.WORKER_BUSY:
                worker = self.identities.get(phone)
                return render("worker_busy", lang, available_from=worker.available_from)
            if exc.reason in (AcceptanceFailure.ALREADY_APPLIED, AcceptanceFailure.JOB_ALREADY_FILLED):
                # A worker holding one of the places gets a fresh code instead of a denial.
                job = JobLedger(self.db).resolve(job_ref, statuses=None)
                if job is not None and AttendanceProtocol(self.db, self.notifier).reissue_otp(phone, job):
                    return render("otp_reissued", lang)
            return render(ACCEPTANCE_DENIALS[exc.reason], lang)
        return render("accept_reply", lang)

    def _verify(self, phone, text, result: IntentResult, lang) -> str:
        try:
            verification = AttendanceProtocol(self.db, self.notifier).verify_otp(phone, result.code)
        except VerificationError as exc:
            if exc.reason == VerificationFailure.TOO_MANY_ATTEMPTS:
                return render("otp_throttled", lang, seconds=math.ceil(exc.retry_after_seconds))
            if exc.reason == VerificationFailure.WORKER_BUSY:
                return render("otp_worker_busy", lang)
            return render("otp_invalid", lang)
        worker = verification.worker
        return render(
            "otp_verified_contractor",
            lang,
            worker_name=worker.name or "-",
            worker_phone=worker.phone_number,
            national_id=worker.national_id or "not provided",
            title=verification.job.display_title,
        )

    def _cancel(self, phone, text, result: IntentResult, lang) -> str:
        if not result.job_ref:
            return render("cancel_usage", lang)
        identity = self.identities.get(phone)
        service = CancellationService(self.db, self.notifier)
        try:
            if identity is not None and identity.role == Role.CONTRACTOR:
                if result.worker_phone:
                    service.cancel_application(
                        result.job_ref,
                        normalize_phone(result.worker_phone),
                        Party.CONTRACTOR,
                        requested_by=phone,
                    )
                    return render("cancel_done", lang)
                cancellation = service.cancel_job(result.job_ref, phone)
                return render(
                    "job_cancelled",
                    lang,
                    title=cancellation.job.display_title,
                    count=len(cancellation.applications),
                )
            service.cancel_application(result.job_ref, phone, Party.WORKER)
        except CancellationError as exc:
            return render(CANCELLATION_DENIALS[exc.reason], lang)
        return render("cancel_done", lang)

    def _list_jobs(self, phone, text, result: IntentResult, lang) -> str:
        worker = self.identities.get(phone)
        if worker is None or worker.role != Role.WORKER or not worker.is_onboarded:
            return render("not_registered", lang)
        jobs = MatchingEngine(self.db).open_jobs_for_worker(worker)
        if not jobs:
            return render("no_recent_job", lang)
        lines = [
            render(
                "open_job_line",
                lang,
                job_id=job.short_id,
                title=job.display_title,
                wage=job.wage,
                start_date=job.start_date,
                location=job.location or job.city or "-",
            )
            for job in jobs
        ]
        return render("open_jobs", lang, lines="\n".join(lines))

    def _job_details(self, phone, text, result: IntentResult, lang) -> str:
        job = JobLedger(self.db).resolve(result.job_ref, statuses=None)
        if job is None:
            return render("job_not_found", lang)
        reply = render(
            "job_details",
            lang,
            title=job.display_title,
            job_id=job.short_id,
            skill=job.skill_required,
            wage=job.wage,
            location=job.location or job.city or "-",
            meeting_point=job.meeting_point or job.location or "-",
            start_date=job.start_date,
            end_date=job.end_date,
            insurance="yes" if job.insurance_provided else "no",
            status=job.status,
            remaining=job.workers_remaining,
            workers_needed=job.workers_needed,
        )
        if job.contractor_phone != phone:
            return reply

        # Only the posting contractor sees who has taken the job.
        applications = (
            self.db.query(Application)
            .filter(Application.job_id == job.id)
            .filter(Application.status != ApplicationStatus.CANCELLED)
            .order_by(Application.created_at.asc())
            .all()
        )
        if applications:
            lines = [
                f"{a.worker.name or '-'} ({a.worker_phone}): {a.status}"
                for a in applications
            ]
            reply += render("job_details_workers", lang, lines="\n".join(lines))
        return reply
