"""FastAPI routers acting as controllers in the MVC architecture."""

from . import analyses, discussions, users

__all__ = ["analyses", "discussions", "users"]
