import base64
import binascii

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from chowk.config import settings
from chowk.database import get_db, get_session_factory
from chowk.dependencies import get_id_reader, get_notifier, require_gateway_token
from chowk.schemas.message import InboundMessage, InboundReply
from chowk.services.language_service import IdCardReader
from chowk.services.matching_service import run_matching
from chowk.services.message_service import MessageService
from chowk.utils.phone import normalize_phone

router = APIRouter(prefix="/messages", tags=["messages"], dependencies=[Depends(require_gateway_token)])


def _decode_image(image_base64: str | None) -> bytes | None:
    if not image_base64:
        return None
    try:
        image = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="image_base64 is not valid base64")
    if len(image) > settings.max_image_bytes:
        raise HTTPException(status_code=413, detail="Image too large")
    return image


@router.post("/inbound", response_model=InboundReply)
async def inbound_message(
    req: InboundMessage,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory),
    notifier=Depends(get_notifier),
    id_reader: IdCardReader = Depends(get_id_reader),
):
    if not normalize_phone(req.sender):
        raise HTTPException(status_code=400, detail="sender is not a phone number")
    image = _decode_image(req.image_base64)

    # Matching runs after the reply so the contractor hears back first.
    def schedule_matching(job):
        background_tasks.add_task(run_matching, session_factory, job.id, notifier)

    service = MessageService(db, notifier, id_reader=id_reader, on_job_posted=schedule_matching)
    return InboundReply(reply=service.handle_inbound(req.sender, req.text, image))
