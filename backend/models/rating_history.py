from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime
from database import Base


class RatingHistory(Base):
    __tablename__ = "rating_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    atcoder_handle = Column(String(50), nullable=False)
    rating = Column(Integer, nullable=False)
    recorded_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), index=True)
