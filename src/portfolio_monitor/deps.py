"""FastAPI dependency injection: app.state holds the components; Depends() resolves them.

Lifespan (main.py) builds the components once and attaches them to app.state;
these getters are used by Depends().
"""
from typing import Annotated

from fastapi import Depends, Request, Response

from portfolio_monitor.container import Components
from portfolio_monitor.core import AuthenticationRequired
from portfolio_monitor.schemas import UserIdentity
from portfolio_monitor.services import (EventRepository, PasswordHasher,
                                        SessionManager, UserDirectory,
                                        WatchlistService, WebhookTester)


def get_components(request: Request) -> Components:
    """Resolve the process-wide components from app.state (created at startup)."""
    return request.app.state.components


def get_user_directory(request: Request) -> UserDirectory:
    return get_components(request).users


def get_password_hasher(request: Request) -> PasswordHasher:
    return get_components(request).passwords


def get_session_manager(request: Request) -> SessionManager:
    return get_components(request).sessions


def get_event_repository(request: Request) -> EventRepository:
    return get_components(request).events


def get_watchlist_service(request: Request) -> WatchlistService:
    return get_components(request).watchlists


def get_webhook_tester(request: Request) -> WebhookTester:
    return get_components(request).webhooks


async def get_current_user(
    request: Request,
    response: Response,
    sessions: Annotated[SessionManager, Depends(get_session_manager)],
) -> UserIdentity:
    """Identity from the session cookie; 401 when there is no valid session."""
    user = await sessions.resolve(request, response)
    if user is None:
        raise AuthenticationRequired()
    return user


# Type aliases for route injection
ComponentsDep = Annotated[Components, Depends(get_components)]
UserDirectoryDep = Annotated[UserDirectory, Depends(get_user_directory)]
PasswordHasherDep = Annotated[PasswordHasher, Depends(get_password_hasher)]
SessionManagerDep = Annotated[SessionManager, Depends(get_session_manager)]
EventRepositoryDep = Annotated[EventRepository, Depends(get_event_repository)]
WatchlistServiceDep = Annotated[WatchlistService, Depends(get_watchlist_service)]
WebhookTesterDep = Annotated[WebhookTester, Depends(get_webhook_tester)]
CurrentUser = Annotated[UserIdentity, Depends(get_current_user)]
