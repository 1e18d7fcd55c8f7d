"""Domain concept for mapping backing-store exceptions to the error taxonomy."""
import asyncio
import logging
from dataclasses import dataclass
from typing import NoReturn

from botocore.exceptions import (BotoCoreError, ClientError,
                                 ConnectTimeoutError, ReadTimeoutError)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from portfolio_monitor.core.exceptions import (PortfolioMonitorError,
                                               ServiceUnavailable,
                                               StoreTimeout)

logger = logging.getLogger(__name__)

# Exceptions from stores we map; all others propagate (e.g. bugs).
STORE_EXCEPTIONS: tuple[type[Exception], ...] = (
    BotoCoreError,
    ClientError,
    SQLAlchemyError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
)

_TIMEOUT_EXCEPTIONS: tuple[type[Exception], ...] = (
    ConnectTimeoutError,
    ReadTimeoutError,
    PoolTimeoutError,
    TimeoutError,
    asyncio.TimeoutError,
)


def _error_code(exc: Exception) -> str | None:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None


@dataclass(frozen=True)
class StoreErrorMapper:
    """Maps backing-store exceptions to ServiceUnavailable / StoreTimeout.

    Inject one per store (e.g. "events table", "user database") so logs and
    client messages name the failing dependency without leaking its detail.
    """

    store_name: str = "backing store"

    def to_error(
        self,
        exc: Exception,
        operation: str,
        user_id: str | None = None,
    ) -> PortfolioMonitorError:
        """Log the failure with correlation context and return the taxonomy error.

        Args:
            exc: The exception raised by boto3, SQLAlchemy or the socket layer.
            operation: What was being attempted (e.g. "get_event").
            user_id: The requesting user, when known.
        """
        code = _error_code(exc)
        logger.error(
            "%s failed: store=%s user=%s error=%s%s",
            operation,
            self.store_name,
            user_id or "-",
            type(exc).__name__,
            f" code={code}" if code else "",
        )
        if isinstance(exc, _TIMEOUT_EXCEPTIONS):
            return StoreTimeout(f"Timed out talking to the {self.store_name}")
        return ServiceUnavailable(f"The {self.store_name} is temporarily unavailable")

    def raise_mapped(
        self,
        exc: Exception,
        operation: str,
        user_id: str | None = None,
    ) -> NoReturn:
        """Map a store exception and raise the result. Never returns."""
        raise self.to_error(exc, operation, user_id=user_id) from exc
