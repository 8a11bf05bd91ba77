from pydantic import BaseModel, Field


class InboundMessage(BaseModel):
    sender: str = Field(min_length=1)
    text: str | None = None
    image_base64: str | None = None


class InboundReply(BaseModel):
    reply: str
