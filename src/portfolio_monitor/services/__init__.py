"""Service layer: stores, authorization checks and store error mapping."""
from portfolio_monitor.services.events import EventRepository
from portfolio_monitor.services.interest import (InterestSignal,
                                                 InterestSignaler,
                                                 LambdaInterestSignaler,
                                                 LoggingInterestSignaler,
                                                 SignalDispatcher)
from portfolio_monitor.services.metrics import compute_portfolio_metrics
from portfolio_monitor.services.passwords import PasswordHasher
from portfolio_monitor.services.session_store import (InMemorySessionStore,
                                                      SessionManager,
                                                      SessionStore,
                                                      SessionStoreUnavailable,
                                                      SqlSessionStore,
                                                      build_session_store)
from portfolio_monitor.services.users import UserDirectory
from portfolio_monitor.services.watchlists import (UNSET, WatchlistService,
                                                   WatchlistUpdateResult)
from portfolio_monitor.services.webhooks import (WebhookTester,
                                                 validate_webhook_url)

__all__ = [
    "UNSET",
    "EventRepository",
    "InMemorySessionStore",
    "InterestSignal",
    "InterestSignaler",
    "LambdaInterestSignaler",
    "LoggingInterestSignaler",
    "PasswordHasher",
    "SessionManager",
    "SessionStore",
    "SessionStoreUnavailable",
    "SignalDispatcher",
    "SqlSessionStore",
    "UserDirectory",
    "WatchlistService",
    "WatchlistUpdateResult",
    "WebhookTester",
    "build_session_store",
    "compute_portfolio_metrics",
    "validate_webhook_url",
]
