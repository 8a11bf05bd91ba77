from pydantic import BaseModel, ConfigDict


class IdentityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone_number: str
    role: str
    name: str | None
    city: str | None
    location: str | None
    skill: str | None
    preferred_language: str
    national_id: str | None
    available_from: str | None
    is_onboarded: bool
    created_at: str
    updated_at: str


class IdentityListResponse(BaseModel):
    users: list[IdentityResponse]
    total: int
    page: int
    per_page: int
