from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from chowk.database import get_db
from chowk.dependencies import require_admin
from chowk.schemas.admin import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminSetupRequest,
    AdminStatusResponse,
    ThrottleResponse,
)
from chowk.services.admin_service import admin_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/status", response_model=AdminStatusResponse)
async def admin_status(db: Session = Depends(get_db)):
    return AdminStatusResponse(
        configured=admin_service.is_configured(db),
        active_sessions=admin_service.active_sessions,
    )


@router.post("/setup")
async def admin_setup(req: AdminSetupRequest, db: Session = Depends(get_db)):
    if admin_service.is_configured(db):
        raise HTTPException(status_code=409, detail="Admin passphrase already set")
    if len(req.passphrase) < 8:
        raise HTTPException(status_code=400, detail="Passphrase must be at least 8 characters")
    admin_service.setup(db, req.passphrase)
    return {"message": "Admin passphrase set"}


@router.post("/login", response_model=AdminLoginResponse | ThrottleResponse)
async def admin_login(req: AdminLoginRequest, request: Request, db: Session = Depends(get_db)):
    if not admin_service.is_configured(db):
        raise HTTPException(status_code=404, detail="Admin passphrase not set")

    client_host = request.client.host if request.client else "unknown"
    result = admin_service.login(db, req.passphrase, throttle_key=f"login:{client_host}")
    if result is None:
        raise HTTPException(status_code=401, detail="Invalid passphrase")
    if "error" in result:
        raise HTTPException(status_code=429, detail=result)
    return AdminLoginResponse(**result)


@router.post("/logout")
async def admin_logout(_token: str = Depends(require_admin)):
    admin_service.logout()
    return {"message": "Logged out"}
