from pydantic import BaseModel


class AdminSetupRequest(BaseModel):
    passphrase: str


class AdminLoginRequest(BaseModel):
    passphrase: str


class AdminLoginResponse(BaseModel):
    token: str
    expires_in_seconds: int


class AdminStatusResponse(BaseModel):
    configured: bool
    active_sessions: int


class ThrottleResponse(BaseModel):
    error: str
    retry_after_seconds: float
