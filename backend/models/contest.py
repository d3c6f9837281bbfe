from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, BigInteger
from database import Base


class Contest(Base):
    __tablename__ = "contests"

    id = Column(String(64), primary_key=True)  # e.g. "abc138"
    title = Column(String(300), nullable=True)
    start_epoch_second = Column(BigInteger, nullable=True, index=True)
    duration_second = Column(Integer, nullable=True)
    rate_change = Column(String(50), nullable=True)


class ContestProblem(Base):
    __tablename__ = "contest_problems"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contest_id = Column(String(64), nullable=False, index=True)
    problem_id = Column(String(64), ForeignKey("problems.id"), nullable=False)
    problem_index = Column(String(10), nullable=False)

    __table_args__ = (UniqueConstraint("contest_id", "problem_id", name="uq_contest_problem"),)
