"""SQLAlchemy models for the MVC architecture."""

from .base import Base
from .analysis import Analysis  # noqa: F401
from .discussion import Discussion  # noqa: F401
from .user import User  # noqa: F401

__all__ = ["Base", "Analysis", "Discussion", "User"]
