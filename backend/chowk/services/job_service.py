import logging
import re
import uuid
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from chowk.config import settings
from chowk.models.application import Application, ApplicationStatus
from chowk.models.job import Job, JobStatus
from chowk.services.language_service import city_from_location, normalize_city
from chowk.utils.clock import date_after, now_iso

logger = logging.getLogger("chowk.jobs")

MIN_PREFIX_LENGTH = 4
_JOB_REF = re.compile(r"[0-9a-f-]{%d,36}" % MIN_PREFIX_LENGTH)


class JobLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, job_id: str) -> Job | None:
        return self.db.get(Job, job_id)

    def create(
        self,
        contractor_phone: str,
        skill_required: str,
        wage: str,
        workers_needed: int,
        location: str | None = None,
        city: str | None = None,
        title: str | None = None,
        meeting_point: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        insurance_provided: bool = False,
    ) -> Job:
        """Stage a new OPEN job. Dates default to a job starting tomorrow."""
        if not 1 <= workers_needed <= 100:
            raise ValueError("workers_needed must be between 1 and 100")
        start = start_date or date_after(1)
        end = end_date or date_after(settings.default_job_duration_days - 1, date.fromisoformat(start))
        if end < start:
            raise ValueError("end_date must not be before start_date")

        now = now_iso()
        job = Job(
            id=str(uuid.uuid4()),
            contractor_phone=contractor_phone,
            title=title,
            skill_required=skill_required.strip().lower(),
            wage=wage,
            city=normalize_city(city) if city else city_from_location(location),
            location=location,
            meeting_point=meeting_point or location,
            workers_needed=workers_needed,
            workers_remaining=workers_needed,
            start_date=start,
            end_date=end,
            insurance_provided=insurance_provided,
            status=JobStatus.OPEN,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        logger.info("job created: %s by %s (%s in %s)", job.id, contractor_phone, job.skill_required, job.city)
        return job

    def resolve(self, ref: str, statuses: tuple[str, ...] | None = (JobStatus.OPEN,)) -> Job | None:
        """Find the single job whose ID is, or starts with, ref.

        An ambiguous prefix resolves to None rather than to an arbitrary match.
        """
        ref = ref.strip().lower()
        if not _JOB_REF.fullmatch(ref):
            return None
        query = self.db.query(Job).filter(Job.id.like(f"{ref}%"))
        if statuses:
            query = query.filter(Job.status.in_(statuses))
        matches = query.limit(2).all()
        if len(matches) != 1:
            if len(matches) > 1:
                logger.info("ambiguous job reference %r", ref)
            return None
        return matches[0]

    def confirmed_count(self, job_id: str) -> int:
        return (
            self.db.query(func.count(Application.id))
            .filter(Application.job_id == job_id)
            .filter(Application.status == ApplicationStatus.CONTRACTOR_CONFIRMED)
            .scalar()
        )
