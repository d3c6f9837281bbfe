# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.user_info import UserInfo
from models.problem import Problem
from models.contest import Contest, ContestProblem
from models.chat_history import ChatHistory
from models.practice_session import PracticeSession, UserSolvedProblem
from models.rating_history import RatingHistory
from models.token_usage import TokenUsage
from models.problem_translation import ProblemTranslation

__all__ = [
    "UserInfo",
    "Problem",
    "Contest",
    "ContestProblem",
    "ChatHistory",
    "PracticeSession",
    "UserSolvedProblem",
    "RatingHistory",
    "TokenUsage",
    "ProblemTranslation",
]
