"""
Worker-job matching.

Two passes over available, onboarded workers whose skill contains the job's
skill: first restricted to the job's city, then, only if that finds nobody,
skill alone. City spellings in free text are too inconsistent to trust a
single pass. There is no ranking: every candidate is notified and the first
to accept wins.
"""
import logging
from datetime import date

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from chowk.models.application import Application
from chowk.models.identity import Identity, Role
from chowk.models.job import Job, JobStatus
from chowk.services.language_service import city_from_location
from chowk.services.templates import render
from chowk.utils.clock import now_iso

logger = logging.getLogger("chowk.matching")

RECENT_JOB_SCAN_LIMIT = 200
OPEN_JOBS_LIMIT = 10


def _worker_city(worker: Identity) -> str:
    city = worker.city or city_from_location(worker.location) or ""
    return city.casefold()


class MatchingEngine:
    def __init__(self, db: Session):
        self.db = db

    def _available_workers_with_skill(self, skill: str, now: str) -> list[Identity]:
        return (
            self.db.query(Identity)
            .filter(Identity.role == Role.WORKER)
            .filter(Identity.is_onboarded.is_(True))
            .filter(func.lower(Identity.skill).contains(skill.strip().lower(), autoescape=True))
            .filter(or_(Identity.available_from.is_(None), Identity.available_from <= now))
            .order_by(Identity.created_at.asc(), Identity.phone_number.asc())
            .all()
        )

    def find_candidates(self, job: Job, now: str | None = None) -> list[Identity]:
        workers = self._available_workers_with_skill(job.skill_required, now or now_iso())
        job_city = (job.city or city_from_location(job.location) or "").casefold()
        if job_city:
            local = [w for w in workers if _worker_city(w) == job_city]
            if local:
                return local
        if workers:
            logger.info("no %s workers in %r for job %s, widening to skill only", job.skill_required, job.city, job.id)
        return workers

    def find_recent_job_for_worker(self, worker: Identity) -> Job | None:
        """Most recent open job the worker could take, preferring their own city."""
        if not worker.skill:
            return None
        applied = select(Application.job_id).where(Application.worker_phone == worker.phone_number)
        jobs = (
            self.db.query(Job)
            .filter(Job.status == JobStatus.OPEN)
            .filter(Job.id.notin_(applied))
            .order_by(Job.created_at.desc())
            .limit(RECENT_JOB_SCAN_LIMIT)
            .all()
        )
        skill = worker.skill.lower()
        suitable = [j for j in jobs if j.skill_required in skill]
        city = _worker_city(worker)
        for job in suitable:
            if (job.city or "").casefold() == city:
                return job
        return suitable[0] if suitable else None

    def open_jobs_for_worker(self, worker: Identity, today: str | None = None, limit: int = OPEN_JOBS_LIMIT) -> list[Job]:
        """Open jobs in the worker's skill and city that have not started yet, newest first."""
        if not worker.skill:
            return []
        query = (
            self.db.query(Job)
            .filter(Job.status == JobStatus.OPEN)
            .filter(Job.start_date >= (today or date.today().isoformat()))
            .filter(func.lower(Job.skill_required).contains(worker.skill.lower(), autoescape=True))
        )
        city = _worker_city(worker)
        if city:
            query = query.filter(func.lower(Job.city) == city)
        return query.order_by(Job.created_at.desc(), Job.id.asc()).limit(limit).all()

    def match_and_notify(self, job: Job, notifier) -> list[Identity]:
        candidates = self.find_candidates(job)
        contractor = self.db.get(Identity, job.contractor_phone)
        contractor_lang = contractor.preferred_language if contractor else None

        if not candidates:
            logger.info("no candidates for job %s", job.id)
            notifier.enqueue(job.contractor_phone, render("no_workers_found", contractor_lang, title=job.display_title))
            return []

        for worker in candidates:
            notifier.enqueue(
                worker.phone_number,
                render(
                    "job_alert",
                    worker.preferred_language,
                    skill=job.skill_required,
                    location=job.location or job.city or "-",
                    wage=job.wage,
                    start_date=job.start_date,
                    end_date=job.end_date,
                    meeting_point=job.meeting_point or job.location or job.city or "-",
                    insurance="yes" if job.insurance_provided else "no",
                    job_id=job.short_id,
                ),
            )
        notifier.enqueue(
            job.contractor_phone,
            render("workers_notified", contractor_lang, count=len(candidates), title=job.display_title),
        )
        logger.info("job %s broadcast to %d worker(s)", job.id, len(candidates))
        return candidates


async def run_matching(session_factory, job_id: str, notifier) -> None:
    """Background entry point: matching runs after the contractor's reply is sent."""
    db = session_factory()
    try:
        job = db.get(Job, job_id)
        if job is None or job.status != JobStatus.OPEN:
            return
        MatchingEngine(db).match_and_notify(job, notifier)
    except Exception:
        logger.exception("matching failed for job %s", job_id)
    finally:
        db.close()
