from sqlalchemy import Column, JSON, Text
from chowk.database import Base


class ConversationState(Base):
    __tablename__ = "conversation_states"

    phone_number = Column(Text, primary_key=True)
    current_step = Column(Text, nullable=False)
    context_data = Column(JSON, nullable=False, default=dict)
    role = Column(Text, nullable=False, default="worker")
    updated_at = Column(Text, nullable=False)
