from fastapi import Header, HTTPException

from chowk.config import settings
from chowk.services.admin_service import admin_service
from chowk.services.language_service import IdCardReader, get_id_card_reader
from chowk.services.notification_service import dispatcher
from chowk.utils.security import tokens_match


async def require_admin(authorization: str = Header(...)):
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization[7:]
    if not admin_service.validate_token(token):
        raise HTTPException(status_code=401, detail="Not logged in or session expired")
    admin_service.touch(token)
    return token


async def require_gateway_token(x_gateway_token: str | None = Header(None)):
    # No configured secret means the gateway runs on a trusted local link.
    if not settings.gateway_token:
        return None
    if not x_gateway_token or not tokens_match(settings.gateway_token, x_gateway_token):
        raise HTTPException(status_code=401, detail="Invalid gateway token")
    return x_gateway_token


def get_notifier():
    return dispatcher


def get_id_reader() -> IdCardReader:
    return get_id_card_reader()
