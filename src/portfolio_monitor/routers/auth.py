"""Authentication routes: signup, login, logout, current identity."""
import asyncio
import logging

from fastapi import APIRouter, Request, Response

from portfolio_monitor.core import (AuthenticationRequired, Conflict,
                                    InternalError, ServiceUnavailable)
from portfolio_monitor.deps import (CurrentUser, PasswordHasherDep,
                                    SessionManagerDep, UserDirectoryDep,
                                    WatchlistServiceDep)
from portfolio_monitor.schemas import (AuthRequest, SuccessResponse,
                                       UserIdentity, UserResponse)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])

# Same message for unknown user and wrong password (no username enumeration)
INVALID_CREDENTIALS = "Invalid username or password"


@router.post("/signup", response_model=UserResponse)
async def signup(
    body: AuthRequest,
    request: Request,
    response: Response,
    users: UserDirectoryDep,
    passwords: PasswordHasherDep,
    sessions: SessionManagerDep,
    watchlists: WatchlistServiceDep,
) -> UserResponse:
    """Create an account with an empty watchlist and start a session."""
    if await users.get_by_username(body.username) is not None:
        raise Conflict("Username already taken")

    try:
        password_hash = await asyncio.to_thread(passwords.hash, body.password)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Password hashing failed during signup")
        raise InternalError("Failed to create account") from exc

    user = await users.create(body.username, password_hash)
    identity = UserIdentity(id=user.id, username=user.username)

    # The read side serves an empty placeholder, so signup survives this failing
    try:
        await watchlists.create_empty(identity)
    except ServiceUnavailable:
        logger.warning("Failed to create watchlist for new user %s", user.id)

    await sessions.create(identity, request, response)
    return UserResponse(user=identity)


@router.post("/login", response_model=UserResponse)
async def login(
    body: AuthRequest,
    request: Request,
    response: Response,
    users: UserDirectoryDep,
    passwords: PasswordHasherDep,
    sessions: SessionManagerDep,
) -> UserResponse:
    """Verify credentials and start a session."""
    user = await users.get_by_username(body.username)
    if user is None:
        await asyncio.to_thread(passwords.verify_dummy, body.password)
        raise AuthenticationRequired(INVALID_CREDENTIALS)
    if not await asyncio.to_thread(passwords.verify, body.password, user.password_hash):
        raise AuthenticationRequired(INVALID_CREDENTIALS)

    identity = UserIdentity(id=user.id, username=user.username)
    await sessions.create(identity, request, response)
    logger.info("User %s logged in", user.id)
    return UserResponse(user=identity)


@router.post("/logout", response_model=SuccessResponse)
async def logout(request: Request, response: Response, sessions: SessionManagerDep) -> SuccessResponse:
    """End the session. Succeeds whether or not one existed."""
    await sessions.destroy(request, response)
    return SuccessResponse()


@router.get("/me", response_model=UserResponse)
async def me(user: CurrentUser) -> UserResponse:
    """Identity behind the current session."""
    return UserResponse(user=user)
