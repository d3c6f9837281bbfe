from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime
from database import Base


class UserInfo(Base):
    __tablename__ = "user_info"

    id = Column(String(36), primary_key=True)  # auth.users id
    atcoder_handle = Column(String(50), nullable=True)
    rating = Column(Integer, nullable=True)
    avatar_url = Column(String(500), nullable=True)  # Supabase storage link
    daily_token_limit = Column(Integer, nullable=True)  # null = server default
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
