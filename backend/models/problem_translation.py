from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint
from database import Base


class ProblemTranslation(Base):
    __tablename__ = "problem_translations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    problem_url = Column(String(500), nullable=False)
    target_lang = Column(String(5), nullable=False)  # ko/ja/en
    translated_content = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("problem_url", "target_lang", name="uq_problem_translation"),)
