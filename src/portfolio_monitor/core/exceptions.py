"""Error taxonomy shared by services and routers.

Every error carries the HTTP status it maps to and a message that is safe to
show to clients. Backing-store detail never ends up in `message`.
"""


class PortfolioMonitorError(Exception):
    """Base class for errors that are rendered as `{success: false, error}`."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidArgument(PortfolioMonitorError):
    """Bad input shape or constraint; never reaches storage."""

    status_code = 400
    default_message = "Invalid request"


class InvalidWebhookUrl(InvalidArgument):
    default_message = "Invalid Slack webhook URL"


class AuthenticationRequired(PortfolioMonitorError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationDenied(PortfolioMonitorError):
    """Authenticated, but not entitled to the resource."""

    status_code = 403
    default_message = "Access denied"


class NotFound(PortfolioMonitorError):
    status_code = 404
    default_message = "Not found"


class UpstreamTimeout(PortfolioMonitorError):
    """The notification provider could not be reached in time."""

    status_code = 408
    default_message = "Webhook request timed out"


class Conflict(PortfolioMonitorError):
    status_code = 409
    default_message = "Resource already exists"


class InternalError(PortfolioMonitorError):
    status_code = 500


class ProviderRejected(PortfolioMonitorError):
    """The notification provider answered with a non-2xx status."""

    status_code = 502
    default_message = "Webhook provider rejected the request"

    def __init__(self, message: str | None = None, provider_status: int | None = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status


class ServiceUnavailable(PortfolioMonitorError):
    """A backing store is unreachable or failing. Retryable."""

    status_code = 503
    default_message = "Service temporarily unavailable"
    retryable = True


class StoreTimeout(ServiceUnavailable):
    default_message = "Backing store timed out"
