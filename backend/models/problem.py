from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, Index
from database import Base


class Problem(Base):
    __tablename__ = "problems"

    id = Column(String(64), primary_key=True)  # e.g. "abc138_a"
    title = Column(String(300), nullable=False)
    difficulty = Column(Integer, nullable=True)  # IRT difficulty, may be missing
    summary = Column(Text, nullable=True)
    statement = Column(Text, nullable=True)
    samples = Column(JSON, nullable=True)  # [{input, output}]
    editorial = Column(Text, nullable=True)
    hints = Column(JSON, nullable=True)  # [{step, content}]
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("idx_problems_difficulty", "difficulty"),)
