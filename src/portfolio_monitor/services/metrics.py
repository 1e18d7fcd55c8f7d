"""Portfolio metrics over a user's already-authorized events. Pure functions."""
from collections import Counter
from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone

from portfolio_monitor.schemas import (DailyActivity, Event, EventsByStatus,
                                       EventsByType, EventStatus, EventType,
                                       PortfolioMetrics, SentimentDistribution,
                                       TickerCount)

SENTIMENT_THRESHOLD = 0.2
TOP_TICKERS_LIMIT = 10
ACTIVITY_DAYS = 7


def sentiment_distribution(events: Iterable[Event]) -> SentimentDistribution:
    """Bucket scores: > 0.2 positive, < -0.2 negative, else neutral. Unscored events are skipped."""
    dist = SentimentDistribution()
    for event in events:
        score = event.sentiment_score
        if score is None:
            continue
        if score > SENTIMENT_THRESHOLD:
            dist.positive += 1
        elif score < -SENTIMENT_THRESHOLD:
            dist.negative += 1
        else:
            dist.neutral += 1
    return dist


def top_tickers(events: Iterable[Event], limit: int = TOP_TICKERS_LIMIT) -> list[TickerCount]:
    """Most frequent tickers; ties keep first-seen order."""
    # Counter preserves insertion order and sorted() is stable
    counts = Counter(e.ticker for e in events if e.ticker)
    ranked = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    return [TickerCount(ticker=t, count=c) for t, c in ranked[:limit]]


def recent_activity(
    events: Iterable[Event],
    today: date | None = None,
    days: int = ACTIVITY_DAYS,
) -> list[DailyActivity]:
    """Event counts for the `days` calendar days ending `today`, oldest first, zero-filled.

    The bucket is the date portion of the event's ISO timestamp, taken as-is
    (no timezone conversion).
    """
    today = today or datetime.now(timezone.utc).date()
    window = [(today - timedelta(days=offset)).isoformat() for offset in range(days - 1, -1, -1)]
    counts = dict.fromkeys(window, 0)
    for event in events:
        day = (event.timestamp or "")[:10]
        if day in counts:
            counts[day] += 1
    return [DailyActivity(date=d, count=c) for d, c in counts.items()]


def compute_portfolio_metrics(events: list[Event], today: date | None = None) -> PortfolioMetrics:
    """Summary statistics for the dashboard.

    The caller must already have scoped `events` to one user.
    """
    by_type = EventsByType(
        NEWS=sum(1 for e in events if e.event_type == EventType.NEWS),
        SEC_FILING=sum(1 for e in events if e.event_type == EventType.SEC_FILING),
    )
    by_status = EventsByStatus(
        PENDING_ANALYSIS=sum(1 for e in events if e.status == EventStatus.PENDING_ANALYSIS),
        ANALYZED=sum(1 for e in events if e.status == EventStatus.ANALYZED),
        FAILED=sum(1 for e in events if e.status == EventStatus.FAILED),
    )
    return PortfolioMetrics(
        total_events=len(events),
        events_by_type=by_type,
        events_by_status=by_status,
        sentiment_distribution=sentiment_distribution(events),
        top_tickers=top_tickers(events),
        recent_activity=recent_activity(events, today=today),
    )
