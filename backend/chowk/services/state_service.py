import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from chowk.models.conversation import ConversationState
from chowk.utils.clock import now_iso

logger = logging.getLogger("chowk.state")


@dataclass
class FlowState:
    """Where a phone number is inside a multi-step flow."""

    step: str
    role: str
    context: dict = field(default_factory=dict)


class ConversationStore:
    """One persisted flow per phone number.

    Methods stage changes on the session; the caller commits so that a flow's
    final step and the ledger write it triggers land together.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, phone: str) -> FlowState | None:
        row = self.db.get(ConversationState, phone)
        if row is None:
            return None
        return FlowState(step=row.current_step, role=row.role, context=dict(row.context_data or {}))

    def save(self, phone: str, state: FlowState) -> None:
        row = self.db.get(ConversationState, phone)
        if row is None:
            row = ConversationState(phone_number=phone)
            self.db.add(row)
        row.current_step = state.step
        row.role = state.role
        # Assign a fresh dict: in-place mutation of a JSON column is not tracked.
        row.context_data = dict(state.context)
        row.updated_at = now_iso()
        logger.debug("state set for %s: %s (%s)", phone, state.step, state.role)

    def clear(self, phone: str) -> None:
        row = self.db.get(ConversationState, phone)
        if row is not None:
            self.db.delete(row)
            logger.debug("state cleared for %s", phone)
