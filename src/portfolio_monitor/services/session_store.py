"""Server-side sessions keyed by an opaque token carried in a cookie.

Two stores implement SessionStore:

- InMemorySessionStore: process lifetime only, single instance.
- SqlSessionStore: relational `session` table, survives restarts and is shared
  by every server instance.

The store is chosen explicitly by configuration (see build_session_store);
a durable store that cannot reach its database stops startup.
"""
import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from fastapi import Request, Response
from sqlalchemy.engine import Engine
from sqlmodel import select

from portfolio_monitor.config import SessionBackend, Settings
from portfolio_monitor.core import STORE_EXCEPTIONS, StoreErrorMapper
from portfolio_monitor.db.models import SessionRecord
from portfolio_monitor.db.sessions import get_session, wait_for_database
from portfolio_monitor.schemas import UserIdentity
from portfolio_monitor.utils import as_utc, utcnow

logger = logging.getLogger(__name__)

# Upper bound on token length accepted from a cookie; token_urlsafe(32) is 43 chars.
_MAX_TOKEN_LENGTH = 128


class SessionStoreUnavailable(RuntimeError):
    """Durable session storage was requested but its database is unreachable."""


@dataclass(frozen=True)
class SessionData:
    session_id: str
    user_id: str
    username: str
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return as_utc(self.expires_at) <= as_utc(now)


class SessionStore(ABC):
    """Base interface for session stores."""

    @abstractmethod
    async def get(self, session_id: str) -> SessionData | None:
        """Return the session, or None when unknown or expired."""

    @abstractmethod
    async def set(self, data: SessionData) -> None:
        """Create or overwrite a session."""

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Remove a session. Deleting an unknown id is not an error."""

    async def close(self) -> None:
        """Release resources. Override if needed."""


class InMemorySessionStore(SessionStore):
    """Process-local session store. Sessions vanish on restart."""

    def __init__(
        self,
        prune_interval: timedelta = timedelta(days=1),
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sessions: dict[str, SessionData] = {}
        self._clock = clock
        self._prune_interval = prune_interval
        self._last_prune = clock()

    def __len__(self) -> int:
        return len(self._sessions)

    def _prune(self, now: datetime) -> None:
        expired = [sid for sid, data in self._sessions.items() if data.expired(now)]
        for sid in expired:
            del self._sessions[sid]
        self._last_prune = now
        if expired:
            logger.debug("Pruned %d expired sessions", len(expired))

    async def get(self, session_id: str) -> SessionData | None:
        data = self._sessions.get(session_id)
        if data is None:
            return None
        if data.expired(self._clock()):
            self._sessions.pop(session_id, None)
            return None
        return data

    async def set(self, data: SessionData) -> None:
        now = self._clock()
        if now - self._last_prune >= self._prune_interval:
            self._prune(now)
        self._sessions[data.session_id] = data

    async def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)


class SqlSessionStore(SessionStore):
    """Session store backed by the relational `session` table."""

    def __init__(self, engine: Engine, clock: Callable[[], datetime] = utcnow) -> None:
        self._engine = engine
        self._clock = clock
        self._errors = StoreErrorMapper(store_name="session store")

    def _get_sync(self, session_id: str) -> SessionData | None:
        with get_session(self._engine) as db:
            record = db.get(SessionRecord, session_id)
            if record is None:
                return None
            if as_utc(record.expires_at) <= as_utc(self._clock()):
                db.delete(record)
                return None
            return SessionData(
                session_id=record.sid,
                user_id=record.user_id,
                username=record.username,
                expires_at=as_utc(record.expires_at),
            )

    def _set_sync(self, data: SessionData) -> None:
        with get_session(self._engine) as db:
            db.merge(
                SessionRecord(
                    sid=data.session_id,
                    user_id=data.user_id,
                    username=data.username,
                    expires_at=as_utc(data.expires_at),
                )
            )

    def _delete_sync(self, session_id: str) -> None:
        with get_session(self._engine) as db:
            record = db.get(SessionRecord, session_id)
            if record is not None:
                db.delete(record)

    def _prune_sync(self) -> int:
        with get_session(self._engine) as db:
            expired = db.exec(
                select(SessionRecord).where(SessionRecord.expires_at <= as_utc(self._clock()))
            ).all()
            for record in expired:
                db.delete(record)
            return len(expired)

    async def get(self, session_id: str) -> SessionData | None:
        try:
            return await asyncio.to_thread(self._get_sync, session_id)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="get_session")

    async def set(self, data: SessionData) -> None:
        try:
            await asyncio.to_thread(self._set_sync, data)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="set_session", user_id=data.user_id)

    async def delete(self, session_id: str) -> None:
        try:
            await asyncio.to_thread(self._delete_sync, session_id)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="delete_session")

    async def prune_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        try:
            return await asyncio.to_thread(self._prune_sync)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="prune_sessions")


def build_session_store(settings: Settings, engine: Engine) -> SessionStore:
    """Create the configured session store.

    Raises:
        SessionStoreUnavailable: durable storage was requested and the
            database did not answer within the configured retries.
    """
    if settings.session_backend is SessionBackend.MEMORY:
        logger.info("Using in-memory session store (sessions are lost on restart)")
        return InMemorySessionStore()
    if not wait_for_database(
        engine,
        retries=settings.db_connect_retries,
        delay_seconds=settings.db_connect_delay_seconds,
    ):
        raise SessionStoreUnavailable(
            "SESSION_STORE=database but the database is unreachable; "
            "fix DATABASE_URL or set SESSION_STORE=memory explicitly"
        )
    logger.info("Using database-backed session store")
    return SqlSessionStore(engine)


class SessionManager:
    """Issues, resolves and destroys sessions and their cookies."""

    def __init__(
        self,
        store: SessionStore,
        *,
        ttl: timedelta = timedelta(hours=24),
        cookie_name: str = "sid",
        cookie_secure: bool = False,
        rolling: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the manager.

        Args:
            store: Where session records live.
            ttl: Session lifetime; also the cookie Max-Age.
            cookie_name: Name of the cookie carrying the session id.
            cookie_secure: Always mark the cookie Secure (production). It is
                also marked Secure whenever the request came in over https.
            rolling: Renew the expiry on every resolved request (sliding).
            clock: Returns the current aware UTC time.
        """
        self._store = store
        self._ttl = ttl
        self._cookie_name = cookie_name
        self._cookie_secure = cookie_secure
        self._rolling = rolling
        self._clock = clock

    @property
    def store(self) -> SessionStore:
        return self._store

    def _set_cookie(self, request: Request, response: Response, session_id: str) -> None:
        response.set_cookie(
            key=self._cookie_name,
            value=session_id,
            max_age=int(self._ttl.total_seconds()),
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure or request.url.scheme == "https",
            path="/",
        )

    def _token_from(self, request: Request) -> str | None:
        token = request.cookies.get(self._cookie_name)
        if not token or len(token) > _MAX_TOKEN_LENGTH:
            return None
        return token

    async def create(self, user: UserIdentity, request: Request, response: Response) -> str:
        """Start a session for `user` and bind it to the response cookie."""
        # Drop any session the client already carried (no fixation)
        previous = self._token_from(request)
        if previous:
            await self._store.delete(previous)
        session_id = secrets.token_urlsafe(32)
        await self._store.set(
            SessionData(
                session_id=session_id,
                user_id=user.id,
                username=user.username,
                expires_at=self._clock() + self._ttl,
            )
        )
        self._set_cookie(request, response, session_id)
        return session_id

    async def resolve(self, request: Request, response: Response | None = None) -> UserIdentity | None:
        """Return the identity for the request's session cookie, or None."""
        token = self._token_from(request)
        if token is None:
            return None
        data = await self._store.get(token)
        if data is None:
            return None
        if self._rolling:
            await self._store.set(replace(data, expires_at=self._clock() + self._ttl))
            if response is not None:
                self._set_cookie(request, response, token)
        return UserIdentity(id=data.user_id, username=data.username)

    async def destroy(self, request: Request, response: Response) -> None:
        """Invalidate the session and clear the cookie. Idempotent."""
        token = self._token_from(request)
        if token:
            await self._store.delete(token)
        response.delete_cookie(
            key=self._cookie_name,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self._cookie_secure or request.url.scheme == "https",
        )
