"""Database package: models and session management."""
from portfolio_monitor.db.models import SessionRecord, User

__all__ = ["SessionRecord", "User"]
