from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import func, text
from sqlalchemy.orm import Session

from chowk.database import get_db
from chowk.dependencies import get_notifier, require_admin
from chowk.models.application import Application, ApplicationStatus
from chowk.models.conversation import ConversationState
from chowk.models.identity import Identity, Role
from chowk.models.job import Job
from chowk.schemas.application import ApplicationListResponse, ApplicationResponse
from chowk.schemas.dashboard import (
    AttendanceListResponse,
    AttendanceRecord,
    ConversationListResponse,
    ConversationResponse,
    QueueStatus,
    StatsResponse,
)
from chowk.schemas.identity import IdentityListResponse, IdentityResponse
from chowk.schemas.job import JobListResponse, JobResponse
from chowk.services.attendance_service import otp_is_live
from chowk.services.export_service import export_attendance_csv
from chowk.services.language_service import normalize_city
from chowk.utils.clock import now_iso

router = APIRouter(
    tags=["dashboard"],
    dependencies=[Depends(require_admin)],
)


def _application_to_response(application: Application, now: str) -> ApplicationResponse:
    response = ApplicationResponse.model_validate(application)
    # The code itself never leaves the server.
    response.otp_live = otp_is_live(application, now)
    return response


def _counts_by_status(db: Session, column) -> dict[str, int]:
    rows = db.query(column, func.count()).group_by(column).all()
    return {status: n for status, n in rows}


@router.get("/dashboard/stats", response_model=StatsResponse)
async def get_stats(db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    roles = _counts_by_status(db, Identity.role)
    jobs_by_status = _counts_by_status(db, Job.status)
    applications_by_status = _counts_by_status(db, Application.status)

    return StatsResponse(
        workers=roles.get(Role.WORKER, 0),
        contractors=roles.get(Role.CONTRACTOR, 0),
        jobs=sum(jobs_by_status.values()),
        jobs_by_status=jobs_by_status,
        applications=sum(applications_by_status.values()),
        applications_by_status=applications_by_status,
        attendance_marked=applications_by_status.get(ApplicationStatus.CONTRACTOR_CONFIRMED, 0),
        active_conversations=db.query(func.count(ConversationState.phone_number)).scalar(),
        queue=QueueStatus(**notifier.status()),
    )


@router.get("/dashboard/users", response_model=IdentityListResponse)
async def list_users(
    role: str | None = None,
    city: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Identity)
    if role:
        query = query.filter(Identity.role == role)
    if city:
        query = query.filter(func.lower(Identity.city) == normalize_city(city).lower())

    total = query.count()
    users = query.order_by(Identity.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return IdentityListResponse(
        users=[IdentityResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/dashboard/jobs", response_model=JobListResponse)
async def list_jobs(
    status: str | None = None,
    city: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Job)
    if status:
        query = query.filter(Job.status == status.upper())
    if city:
        query = query.filter(func.lower(Job.city) == normalize_city(city).lower())

    total = query.count()
    jobs = query.order_by(Job.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()

    confirmed = dict(
        db.query(Application.job_id, func.count(Application.id))
        .filter(Application.job_id.in_([j.id for j in jobs]))
        .filter(Application.status == ApplicationStatus.CONTRACTOR_CONFIRMED)
        .group_by(Application.job_id)
        .all()
    )
    responses = []
    for job in jobs:
        response = JobResponse.model_validate(job)
        response.confirmed_count = confirmed.get(job.id, 0)
        responses.append(response)
    return JobListResponse(jobs=responses, total=total, page=page, per_page=per_page)


@router.get("/dashboard/applications", response_model=ApplicationListResponse)
async def list_applications(
    status: str | None = None,
    job_id: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(Application)
    if status:
        query = query.filter(Application.status == status.upper())
    if job_id:
        query = query.filter(Application.job_id == job_id)

    total = query.count()
    applications = (
        query.order_by(Application.created_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    )
    now = now_iso()
    return ApplicationListResponse(
        applications=[_application_to_response(a, now) for a in applications],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/dashboard/attendance", response_model=AttendanceListResponse)
async def list_attendance(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    total = db.execute(
        text("SELECT COUNT(*) FROM applications WHERE status = 'CONTRACTOR_CONFIRMED'")
    ).scalar()
    rows = db.execute(
        text("""
            SELECT a.id AS application_id, a.job_id, COALESCE(j.title, j.skill_required) AS job_title,
                   a.worker_phone, w.name AS worker_name, w.national_id, j.contractor_phone,
                   a.attendance_marked_at
            FROM applications a
            JOIN jobs j ON j.id = a.job_id
            JOIN identities w ON w.phone_number = a.worker_phone
            WHERE a.status = 'CONTRACTOR_CONFIRMED'
            ORDER BY a.attendance_marked_at DESC
            LIMIT :limit OFFSET :offset
        """),
        {"limit": per_page, "offset": (page - 1) * per_page},
    ).mappings()
    return AttendanceListResponse(
        records=[AttendanceRecord(**row) for row in rows],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/dashboard/conversations", response_model=ConversationListResponse)
async def list_conversations(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    query = db.query(ConversationState)
    total = query.count()
    states = query.order_by(ConversationState.updated_at.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return ConversationListResponse(
        conversations=[ConversationResponse.model_validate(s) for s in states],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/export/attendance.csv")
async def attendance_csv(db: Session = Depends(get_db)):
    return Response(
        content=export_attendance_csv(db),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="attendance.csv"'},
    )
