"""Core abstractions: error taxonomy, store error mapping, HTTP error shape."""
from portfolio_monitor.core.error_mapper import (STORE_EXCEPTIONS,
                                                 StoreErrorMapper)
from portfolio_monitor.core.exceptions import (AuthenticationRequired,
                                               AuthorizationDenied, Conflict,
                                               InternalError, InvalidArgument,
                                               InvalidWebhookUrl, NotFound,
                                               PortfolioMonitorError,
                                               ProviderRejected,
                                               ServiceUnavailable,
                                               StoreTimeout, UpstreamTimeout)
from portfolio_monitor.core.handlers import register_exception_handlers

__all__ = [
    "STORE_EXCEPTIONS",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "Conflict",
    "InternalError",
    "InvalidArgument",
    "InvalidWebhookUrl",
    "NotFound",
    "PortfolioMonitorError",
    "ProviderRejected",
    "ServiceUnavailable",
    "StoreErrorMapper",
    "StoreTimeout",
    "UpstreamTimeout",
    "register_exception_handlers",
]
