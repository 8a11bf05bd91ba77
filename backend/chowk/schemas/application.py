from pydantic import BaseModel, ConfigDict, Field


class AcceptRequest(BaseModel):
    worker_phone: str = Field(min_length=1)
    job_id: str = Field(min_length=4)


class AcceptResponse(BaseModel):
    application_id: str
    job_id: str
    status: str
    workers_remaining: int
    job_status: str


class VerifyOtpRequest(BaseModel):
    contractor_phone: str = Field(min_length=1)
    otp: str = Field(pattern=r"^\d{6}$")


class VerifyOtpResponse(BaseModel):
    application_id: str
    job_id: str
    worker_phone: str
    worker_name: str | None
    national_id: str | None
    attendance_marked_at: str | None
    job_status: str


class CancelRequest(BaseModel):
    job_id: str = Field(min_length=4)
    worker_phone: str = Field(min_length=1)
    cancelled_by: str = Field(pattern=r"^(worker|contractor)$")
    requested_by: str | None = None


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    job_id: str
    worker_phone: str
    status: str
    attendance_status: str
    attendance_marked_at: str | None
    cancelled_by: str | None
    created_at: str
    updated_at: str
    otp_live: bool = False


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
    total: int
    page: int
    per_page: int
