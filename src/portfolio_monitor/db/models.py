"""Relational models for the portfolio monitor.

Only accounts and (optionally) sessions live in the relational database.
Events, the user/event junction and watchlists live in DynamoDB.
"""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

from portfolio_monitor.utils import utcnow


def _new_user_id() -> str:
    return str(uuid.uuid4())


class User(SQLModel, table=True):
    """User account. password_hash never leaves the services layer."""

    id: str = Field(default_factory=_new_user_id, primary_key=True)
    username: str = Field(unique=True, index=True, max_length=64)
    password_hash: str
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class SessionRecord(SQLModel, table=True):
    """Server-side session for the durable session store."""

    __tablename__ = "session"

    sid: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    username: str
    # Aware UTC; SQLite hands it back naive, so readers normalize with as_utc
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False, index=True))
