"""Watchlist service: per-user ticker lists and the alert webhook.

Writes replace the whole ticker list. The read that preserves created_at and
the following put are not atomic: two concurrent replaces for the same user
can race, and the later one wins. Writes are user-initiated and rare, so this
is accepted.
"""
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import ValidationError

from portfolio_monitor.core import (STORE_EXCEPTIONS, InternalError,
                                    InvalidArgument, StoreErrorMapper)
from portfolio_monitor.dynamo import DynamoTable
from portfolio_monitor.schemas import (TickerStatus, UserIdentity, Watchlist,
                                       WatchlistTicker)
from portfolio_monitor.services.interest import InterestSignal, SignalDispatcher
from portfolio_monitor.services.webhooks import validate_webhook_url
from portfolio_monitor.utils import isoformat_z, utcnow

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks "webhook_url not supplied" (keep the stored value), as opposed to None (clear it)
UNSET = _Unset()


@dataclass
class WatchlistUpdateResult:
    watchlist: Watchlist
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


def normalize_ticker(raw: object) -> WatchlistTicker:
    """Upgrade a legacy bare-string entry to the object form."""
    if isinstance(raw, str):
        return WatchlistTicker(symbol=raw, name=raw, status=TickerStatus.ACTIVE)
    if isinstance(raw, WatchlistTicker):
        ticker = raw
    else:
        ticker = WatchlistTicker.model_validate(raw)
    if not ticker.name:
        ticker = ticker.model_copy(update={"name": ticker.symbol})
    return ticker


def compute_delta(old: Sequence[str], new: Sequence[str]) -> tuple[list[str], list[str]]:
    """(added, removed) symbols between two lists; case-sensitive, order of first appearance."""
    old_set, new_set = set(old), set(new)
    added = list(dict.fromkeys(s for s in new if s not in old_set))
    removed = list(dict.fromkeys(s for s in old if s not in new_set))
    return added, removed


def _to_item(watchlist: Watchlist) -> dict:
    return {
        "user_id": watchlist.user_id,
        "tickers": [t.model_dump(mode="json") for t in watchlist.tickers],
        "webhook_url": watchlist.webhook_url,
        "created_at": watchlist.created_at,
        "updated_at": watchlist.updated_at,
    }


class WatchlistService:
    """Reads and replaces watchlists; signals newly watched tickers to the pipeline."""

    def __init__(
        self,
        table: DynamoTable,
        dispatcher: SignalDispatcher,
        *,
        webhook_prefix: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the service.

        Args:
            table: Watchlist table keyed by user_id.
            dispatcher: Fire-and-forget channel for interest signals.
            webhook_prefix: Required prefix for webhook URLs.
            clock: Returns the current aware UTC time.
        """
        self._table = table
        self._dispatcher = dispatcher
        self._webhook_prefix = webhook_prefix
        self._clock = clock
        self._errors = StoreErrorMapper(store_name="watchlist store")

    def _from_item(self, item: dict) -> Watchlist:
        try:
            tickers = [normalize_ticker(t) for t in item.get("tickers") or []]
            return Watchlist(
                user_id=item["user_id"],
                tickers=tickers,
                webhook_url=item.get("webhook_url") or None,
                created_at=item.get("created_at"),
                updated_at=item.get("updated_at"),
            )
        except (ValidationError, KeyError) as e:
            logger.error("Malformed watchlist record for user %s", item.get("user_id", "?"))
            raise InternalError("Watchlist data is malformed") from e

    async def _load(self, user: UserIdentity) -> dict | None:
        try:
            return await self._table.get_item({"user_id": user.id})
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="get_watchlist", user_id=user.id)

    async def _save(self, watchlist: Watchlist) -> None:
        try:
            await self._table.put_item(_to_item(watchlist))
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="put_watchlist", user_id=watchlist.user_id)

    def _clean_webhook(self, webhook_url: str | None) -> str | None:
        if webhook_url is None or not webhook_url.strip():
            return None
        return validate_webhook_url(webhook_url, self._webhook_prefix)

    async def get(self, user: UserIdentity) -> Watchlist:
        """The user's watchlist, or an empty unsaved placeholder.

        Legacy string tickers are normalized in the returned value only;
        storage is untouched until the next replace.
        """
        item = await self._load(user)
        if item is None:
            return Watchlist(user_id=user.id)
        return self._from_item(item)

    async def create_empty(self, user: UserIdentity) -> Watchlist:
        """Write an empty watchlist for a new user."""
        now = isoformat_z(self._clock())
        watchlist = Watchlist(user_id=user.id, created_at=now, updated_at=now)
        await self._save(watchlist)
        logger.info("Created watchlist for new user %s", user.id)
        return watchlist

    async def replace(
        self,
        user: UserIdentity,
        tickers: Sequence[WatchlistTicker | str | dict],
        webhook_url: "str | None | _Unset" = UNSET,
    ) -> WatchlistUpdateResult:
        """Replace the ticker list (and optionally the webhook) wholesale.

        Args:
            user: Owner of the watchlist.
            tickers: The complete new list; strings are upgraded to objects.
            webhook_url: UNSET keeps the stored URL, None or "" clears it,
                anything else must be a valid provider webhook URL.

        Raises:
            InvalidArgument: a ticker or the webhook URL is invalid. Nothing
                is written in that case.
            ServiceUnavailable: the watchlist table could not be read or written.
        """
        try:
            new_tickers = [normalize_ticker(t) for t in tickers]
        except ValidationError as e:
            raise InvalidArgument("Invalid ticker entry") from e

        webhook = None if webhook_url is UNSET else self._clean_webhook(webhook_url)

        existing = await self._load(user)
        previous = self._from_item(existing) if existing is not None else None
        if webhook_url is UNSET and previous is not None:
            webhook = previous.webhook_url

        now = isoformat_z(self._clock())
        watchlist = Watchlist(
            user_id=user.id,
            tickers=new_tickers,
            webhook_url=webhook,
            created_at=(previous.created_at if previous else None) or now,
            updated_at=now,
        )
        await self._save(watchlist)

        old_symbols = [t.symbol for t in previous.tickers] if previous else []
        added, removed = compute_delta(old_symbols, [t.symbol for t in new_tickers])
        logger.info(
            "Watchlist updated for user %s: %d tickers (%d added, %d removed)",
            user.id,
            len(new_tickers),
            len(added),
            len(removed),
        )
        if added:
            self._signal(InterestSignal(user_id=user.id, added=added, removed=removed))
        return WatchlistUpdateResult(watchlist=watchlist, added=added, removed=removed)

    def _signal(self, signal: InterestSignal) -> None:
        # The write already succeeded; a failure to even schedule must not undo that
        try:
            self._dispatcher.dispatch(signal)
        except RuntimeError as exc:
            logger.error("Could not schedule interest signal for user %s: %s", signal.user_id, exc)
