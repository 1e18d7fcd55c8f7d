"""Event repository: authorized reads over the events and user/event junction tables.

The junction table (user_id, event_id) is the only authorization boundary for
event data. It is consulted on every call; nothing is cached across requests.
"""
import logging

from pydantic import ValidationError

from portfolio_monitor.core import (STORE_EXCEPTIONS, AuthorizationDenied,
                                    InternalError, NotFound, StoreErrorMapper)
from portfolio_monitor.dynamo import BATCH_GET_LIMIT, DynamoTable
from portfolio_monitor.schemas import Event, EventStatus, UserIdentity
from portfolio_monitor.utils import parse_timestamp

logger = logging.getLogger(__name__)


def _parse_event(item: dict) -> Event:
    try:
        return Event.model_validate(item)
    except ValidationError as e:
        logger.error("Malformed event record %s: %d validation errors",
                     item.get("event_id", "?"), e.error_count())
        raise InternalError("Event data is malformed") from e


def sort_by_timestamp_desc(events: list[Event]) -> list[Event]:
    """Newest first by instant, whatever the precision or UTC offset.

    Ties keep their input order (stable sort); unparseable timestamps sort last.
    """
    return sorted(events, key=lambda e: parse_timestamp(e.timestamp), reverse=True)


class EventRepository:
    """Reads events a user is entitled to see."""

    def __init__(
        self,
        events_table: DynamoTable,
        user_events_table: DynamoTable,
        *,
        batch_size: int = BATCH_GET_LIMIT,
    ) -> None:
        """Initialize with the two tables.

        Args:
            events_table: Event bodies keyed by event_id.
            user_events_table: Junction rows keyed by (user_id, event_id).
            batch_size: Keys per BatchGetItem round-trip (capped at 100).
        """
        self._events = events_table
        self._user_events = user_events_table
        self._batch_size = min(batch_size, BATCH_GET_LIMIT)
        self._errors = StoreErrorMapper(store_name="event store")

    async def _authorized_event_ids(self, user: UserIdentity) -> list[str]:
        rows = await self._user_events.query_all("user_id", user.id)
        seen: set[str] = set()
        ids: list[str] = []
        for row in rows:
            event_id = row.get("event_id")
            if event_id and event_id not in seen:
                seen.add(event_id)
                ids.append(event_id)
        return ids

    async def get_by_id(self, event_id: str, user: UserIdentity) -> Event:
        """Return one event the user is entitled to.

        Raises:
            AuthorizationDenied: no junction row for (user, event), whether or
                not the event exists.
            NotFound: the junction row exists but the event body does not.
            ServiceUnavailable: a table could not be read.
        """
        try:
            entitlement = await self._user_events.get_item({"user_id": user.id, "event_id": event_id})
            if entitlement is None:
                raise AuthorizationDenied("You do not have access to this event")
            item = await self._events.get_item({"event_id": event_id})
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="get_event", user_id=user.id)
        if item is None:
            logger.warning("Junction row without event body: user=%s event=%s", user.id, event_id)
            raise NotFound("Event not found")
        return _parse_event(item)

    async def list_for_user(
        self,
        user: UserIdentity,
        *,
        ticker: str | None = None,
        status: EventStatus | None = None,
        limit: int | None = None,
    ) -> list[Event]:
        """List the user's events, newest first.

        Resolves the user's entitled event ids from the junction table,
        batch-fetches their bodies (at most `batch_size` keys per call),
        filters by ticker and status, sorts by timestamp descending and
        truncates to `limit`.
        """
        try:
            event_ids = await self._authorized_event_ids(user)
            items = await self._events.batch_get(
                [{"event_id": event_id} for event_id in event_ids],
                batch_size=self._batch_size,
            )
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="list_events", user_id=user.id)

        # BatchGetItem does not preserve request order; restore junction order
        position = {event_id: i for i, event_id in enumerate(event_ids)}
        items.sort(key=lambda item: position.get(item.get("event_id"), len(position)))

        events = [_parse_event(item) for item in items]
        if ticker:
            events = [e for e in events if e.ticker == ticker]
        if status is not None:
            events = [e for e in events if e.status == status]
        events = sort_by_timestamp_desc(events)
        if limit is not None:
            events = events[:limit]
        return events

    async def probe(self) -> None:
        """Liveness check on the events table; raises ServiceUnavailable."""
        try:
            await self._events.probe()
        except STORE_EXCEPTIONS as e:
            self._errors.raise_mapped(e, operation="health_probe")
