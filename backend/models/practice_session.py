from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint
from database import Base


class PracticeSession(Base):
    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    problem_id = Column(String(64), nullable=False)
    problem_title = Column(String(300), nullable=True)
    difficulty = Column(Integer, nullable=True)
    time_limit = Column(Integer, nullable=False)  # seconds
    elapsed_time = Column(Integer, nullable=False)  # seconds
    hints_used = Column(Integer, default=0)
    solved = Column(Boolean, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class UserSolvedProblem(Base):
    __tablename__ = "user_solved_problems"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    problem_id = Column(String(64), nullable=False)
    contest_id = Column(String(64), nullable=True)
    solved_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("user_id", "problem_id", name="uq_user_solved_problem"),)
