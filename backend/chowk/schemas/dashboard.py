from pydantic import BaseModel, ConfigDict


class QueueStatus(BaseModel):
    queue_length: int
    is_processing: bool
    sent: int
    failed: int
    dropped: int


class StatsResponse(BaseModel):
    workers: int
    contractors: int
    jobs: int
    jobs_by_status: dict[str, int]
    applications: int
    applications_by_status: dict[str, int]
    attendance_marked: int
    active_conversations: int
    queue: QueueStatus


class AttendanceRecord(BaseModel):
    application_id: str
    job_id: str
    job_title: str
    worker_phone: str
    worker_name: str | None
    national_id: str | None
    contractor_phone: str
    attendance_marked_at: str | None


class AttendanceListResponse(BaseModel):
    records: list[AttendanceRecord]
    total: int
    page: int
    per_page: int


class ConversationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone_number: str
    current_step: str
    role: str
    context_data: dict
    updated_at: str


class ConversationListResponse(BaseModel):
    conversations: list[ConversationResponse]
    total: int
    page: int
    per_page: int
