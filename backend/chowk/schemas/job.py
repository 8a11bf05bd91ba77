from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobCreate(BaseModel):
    contractor_phone: str = Field(min_length=1)
    skill_required: str = Field(min_length=2)
    wage: str = Field(min_length=1)
    workers_needed: int = Field(ge=1, le=100)
    title: str | None = None
    location: str | None = None
    city: str | None = None
    meeting_point: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    insurance_provided: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class JobCancelRequest(BaseModel):
    contractor_phone: str = Field(min_length=1)


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    contractor_phone: str
    title: str | None
    skill_required: str
    wage: str
    city: str | None
    location: str | None
    meeting_point: str | None
    workers_needed: int
    workers_remaining: int
    start_date: str
    end_date: str
    insurance_provided: bool
    status: str
    created_at: str
    updated_at: str
    confirmed_count: int = 0


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int
    page: int
    per_page: int
