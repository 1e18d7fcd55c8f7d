"""User directory over the relational `user` table."""
import asyncio
import logging

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from portfolio_monitor.core import STORE_EXCEPTIONS, Conflict, StoreErrorMapper
from portfolio_monitor.db.models import User
from portfolio_monitor.db.sessions import get_session, ping
from portfolio_monitor.schemas import UserPublic
from portfolio_monitor.utils import as_utc

logger = logging.getLogger(__name__)


def to_public(user: User) -> UserPublic:
    """Strip the password hash."""
    return UserPublic(id=user.id, username=user.username, created_at=as_utc(user.created_at))


class UserDirectory:
    """Create and look up users. Absence is a normal result, not an error."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._errors = StoreErrorMapper(store_name="user database")

    def _get_by_id_sync(self, user_id: str) -> User | None:
        with get_session(self._engine) as db:
            return db.get(User, user_id)

    def _get_by_username_sync(self, username: str) -> User | None:
        with get_session(self._engine) as db:
            return db.exec(select(User).where(User.username == username)).first()

    def _create_sync(self, username: str, password_hash: str) -> User:
        with get_session(self._engine) as db:
            if db.exec(select(User).where(User.username == username)).first() is not None:
                raise Conflict("Username already taken")
            user = User(username=username, password_hash=password_hash)
            db.add(user)
            db.flush()
            db.refresh(user)
            return user

    def _list_all_sync(self) -> list[User]:
        with get_session(self._engine) as db:
            return list(db.exec(select(User).order_by(User.created_at)).all())

    async def get_by_id(self, user_id: str) -> User | None:
        try:
            return await asyncio.to_thread(self._get_by_id_sync, user_id)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="get_user", user_id=user_id)

    async def get_by_username(self, username: str) -> User | None:
        try:
            return await asyncio.to_thread(self._get_by_username_sync, username)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="get_user_by_username")

    async def create(self, username: str, password_hash: str) -> User:
        """Insert a user.

        Raises:
            Conflict: the username is taken, either found before the insert or
                rejected by the unique index when two signups race.
        """
        try:
            user = await asyncio.to_thread(self._create_sync, username, password_hash)
        except IntegrityError as e:
            logger.info("Signup raced on username uniqueness")
            raise Conflict("Username already taken") from e
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="create_user")
        logger.info("Created user %s", user.id)
        return user

    async def list_all(self) -> list[UserPublic]:
        """All users, public projection only."""
        try:
            users = await asyncio.to_thread(self._list_all_sync)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="list_users")
        return [to_public(u) for u in users]

    async def probe(self) -> None:
        """Liveness check on the user database; raises ServiceUnavailable."""
        try:
            await asyncio.to_thread(ping, self._engine)
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="health_probe")
