from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chowk.database import get_db
from chowk.dependencies import get_notifier, require_admin
from chowk.errors import (
    HTTP_STATUS,
    AcceptanceError,
    CancellationError,
    TransientError,
    VerificationError,
    VerificationFailure,
)
from chowk.schemas.application import (
    AcceptRequest,
    AcceptResponse,
    ApplicationResponse,
    CancelRequest,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from chowk.services.acceptance_service import AcceptanceService
from chowk.services.attendance_service import AttendanceProtocol
from chowk.services.cancellation_service import CancellationService
from chowk.utils.phone import normalize_phone

router = APIRouter(
    prefix="/applications",
    tags=["applications"],
    dependencies=[Depends(require_admin)],
)


@router.post("/accept", response_model=AcceptResponse, status_code=201)
async def accept_job(req: AcceptRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    try:
        acceptance = AcceptanceService(db, notifier).accept_job(normalize_phone(req.worker_phone), req.job_id)
    except (AcceptanceError, TransientError) as exc:
        raise HTTPException(status_code=HTTP_STATUS[exc.reason], detail=exc.reason)
    return AcceptResponse(
        application_id=acceptance.application.id,
        job_id=acceptance.job.id,
        status=acceptance.application.status,
        workers_remaining=acceptance.job.workers_remaining,
        job_status=acceptance.job.status,
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(req: VerifyOtpRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    try:
        verification = AttendanceProtocol(db, notifier).verify_otp(normalize_phone(req.contractor_phone), req.otp)
    except VerificationError as exc:
        if exc.reason == VerificationFailure.TOO_MANY_ATTEMPTS:
            raise HTTPException(
                status_code=429,
                detail={"error": exc.reason, "retry_after_seconds": exc.retry_after_seconds},
            )
        raise HTTPException(status_code=HTTP_STATUS[exc.reason], detail=exc.reason)
    except TransientError as exc:
        raise HTTPException(status_code=503, detail=exc.reason)

    application, worker = verification.application, verification.worker
    return VerifyOtpResponse(
        application_id=application.id,
        job_id=verification.job.id,
        worker_phone=worker.phone_number,
        worker_name=worker.name,
        national_id=worker.national_id,
        attendance_marked_at=application.attendance_marked_at,
        job_status=verification.job.status,
    )


@router.post("/cancel", response_model=ApplicationResponse)
async def cancel_application(req: CancelRequest, db: Session = Depends(get_db), notifier=Depends(get_notifier)):
    try:
        cancellation = CancellationService(db, notifier).cancel_application(
            req.job_id,
            normalize_phone(req.worker_phone),
            req.cancelled_by,
            requested_by=normalize_phone(req.requested_by) if req.requested_by else None,
        )
    except (CancellationError, TransientError) as exc:
        raise HTTPException(status_code=HTTP_STATUS[exc.reason], detail=exc.reason)
    return ApplicationResponse.model_validate(cancellation.applications[0])
