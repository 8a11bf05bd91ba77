from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from chowk.database import get_db, get_session_factory
from chowk.dependencies import get_notifier, require_admin
from chowk.errors import HTTP_STATUS, CancellationError, TransientError
from chowk.models.job import Job
from chowk.schemas.job import JobCancelRequest, JobCreate, JobResponse
from chowk.services.cancellation_service import CancellationService
from chowk.services.identity_service import IdentityDirectory
from chowk.services.job_service import JobLedger
from chowk.services.matching_service import run_matching
from chowk.utils.phone import normalize_phone

router = APIRouter(
    prefix="/jobs",
    tags=["jobs"],
    dependencies=[Depends(require_admin)],
)


def _job_to_response(job: Job, db: Session) -> JobResponse:
    response = JobResponse.model_validate(job)
    response.confirmed_count = JobLedger(db).confirmed_count(job.id)
    return response


@router.post("", response_model=JobResponse, status_code=201)
async def create_job(
    req: JobCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    notifier=Depends(get_notifier),
):
    contractor_phone = normalize_phone(req.contractor_phone)
    IdentityDirectory(db).ensure_contractor(contractor_phone)
    try:
        job = JobLedger(db).create(
            contractor_phone=contractor_phone,
            skill_required=req.skill_required,
            wage=req.wage,
            workers_needed=req.workers_needed,
            location=req.location,
            city=req.city,
            title=req.title,
            meeting_point=req.meeting_point,
            start_date=req.start_date.isoformat() if req.start_date else None,
            end_date=req.end_date.isoformat() if req.end_date else None,
            insurance_provided=req.insurance_provided,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))
    db.commit()
    db.refresh(job)

    background_tasks.add_task(run_matching, session_factory, job.id, notifier)
    return _job_to_response(job, db)


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, db: Session = Depends(get_db)):
    job = JobLedger(db).resolve(job_id, statuses=None)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return _job_to_response(job, db)


@router.post("/{job_id}/cancel", response_model=JobResponse)
async def cancel_job(
    job_id: str,
    req: JobCancelRequest,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    try:
        cancellation = CancellationService(db, notifier).cancel_job(job_id, normalize_phone(req.contractor_phone))
    except CancellationError as exc:
        raise HTTPException(status_code=HTTP_STATUS[exc.reason], detail=exc.reason)
    except TransientError as exc:
        raise HTTPException(status_code=503, detail=exc.reason)
    db.refresh(cancellation.job)
    return _job_to_response(cancellation.job, db)
