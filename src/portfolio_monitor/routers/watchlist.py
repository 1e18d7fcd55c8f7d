"""Watchlist routes: read, full replace, webhook probe."""
from fastapi import APIRouter

from portfolio_monitor.deps import (CurrentUser, WatchlistServiceDep,
                                    WebhookTesterDep)
from portfolio_monitor.schemas import (MessageResponse, WatchlistChanges,
                                       WatchlistResponse, WatchlistUpdate,
                                       WatchlistUpdateResponse,
                                       WebhookTestRequest)
from portfolio_monitor.services import UNSET

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


@router.get("", response_model=WatchlistResponse)
async def get_watchlist(user: CurrentUser, watchlists: WatchlistServiceDep) -> WatchlistResponse:
    """The caller's watchlist, or an empty placeholder when none is stored."""
    return WatchlistResponse(watchlist=await watchlists.get(user))


@router.put("", response_model=WatchlistUpdateResponse)
async def replace_watchlist(
    body: WatchlistUpdate,
    user: CurrentUser,
    watchlists: WatchlistServiceDep,
) -> WatchlistUpdateResponse:
    """Replace the ticker list. Omit webhook_url to keep it, send null to clear it."""
    webhook_url = body.webhook_url if "webhook_url" in body.model_fields_set else UNSET
    result = await watchlists.replace(user, body.tickers, webhook_url=webhook_url)
    return WatchlistUpdateResponse(
        watchlist=result.watchlist,
        changes=WatchlistChanges(added=result.added, removed=result.removed),
    )


@router.post("/test-webhook", response_model=MessageResponse)
async def test_webhook(
    body: WebhookTestRequest,
    _: CurrentUser,
    webhooks: WebhookTesterDep,
) -> MessageResponse:
    """Send a test message to the given Slack webhook."""
    await webhooks.test(body.webhook_url)
    return MessageResponse(message="Test notification sent")
