import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from database import Base


class ChatHistory(Base):
    __tablename__ = "chat_history"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="New Chat")
    messages = Column(Text, nullable=False)  # JSON array of serialized messages
    problem_url = Column(String(500), nullable=True)
    hints = Column(JSON, nullable=True)  # [{step, content}]
    summary = Column(Text, nullable=True)
    summary_message_count = Column(Integer, nullable=True)
    last_total_tokens = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
