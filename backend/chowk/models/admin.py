from sqlalchemy import Column, Text
from chowk.database import Base


class AdminConfig(Base):
    __tablename__ = "admin_config"

    key = Column(Text, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
