"""Database models and repositories for the Bookstall API."""

from . import init, models, repositories, session

__all__ = ["init", "models", "repositories", "session"]
