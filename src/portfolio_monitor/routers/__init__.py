"""API routers.

Includes routes for:
- /api/auth - signup, login, logout, current identity
- /api/users - user listing (public fields only)
- /api/events - authorized event list and detail
- /api/portfolio - metrics over the caller's events
- /api/watchlist - watchlist read/replace and webhook test
- /api/health - backing store liveness
"""
from portfolio_monitor.routers.auth import router as auth_router
from portfolio_monitor.routers.events import router as events_router
from portfolio_monitor.routers.health import router as health_router
from portfolio_monitor.routers.portfolio import router as portfolio_router
from portfolio_monitor.routers.users import router as users_router
from portfolio_monitor.routers.watchlist import router as watchlist_router

__all__ = [
    "auth_router",
    "events_router",
    "health_router",
    "portfolio_router",
    "users_router",
    "watchlist_router",
]
