"""Event routes. Every read goes through the user/event junction check."""
from fastapi import APIRouter, Query

from portfolio_monitor.deps import CurrentUser, EventRepositoryDep
from portfolio_monitor.schemas import (EventListResponse, EventResponse,
                                       EventStatus)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.get("", response_model=EventListResponse, response_model_exclude_none=True)
async def list_events(
    user: CurrentUser,
    repo: EventRepositoryDep,
    ticker: str | None = Query(default=None, max_length=32, description="Filter by ticker symbol"),
    status: EventStatus | None = Query(default=None, description="Filter by analysis status"),
    limit: int = Query(default=100, ge=1, le=1000, description="Max results"),
) -> EventListResponse:
    """Events the caller is entitled to, newest first."""
    events = await repo.list_for_user(user, ticker=ticker or None, status=status, limit=limit)
    return EventListResponse(count=len(events), events=events)


@router.get("/{event_id}", response_model=EventResponse, response_model_exclude_none=True)
async def get_event(event_id: str, user: CurrentUser, repo: EventRepositoryDep) -> EventResponse:
    """Single event: 403 without entitlement, 404 when the body is missing."""
    return EventResponse(event=await repo.get_by_id(event_id, user))
