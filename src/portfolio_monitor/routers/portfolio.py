"""Portfolio metrics over the caller's authorized events."""
from fastapi import APIRouter

from portfolio_monitor.deps import CurrentUser, EventRepositoryDep
from portfolio_monitor.schemas import PortfolioResponse
from portfolio_monitor.services.metrics import compute_portfolio_metrics

router = APIRouter(prefix="/api/portfolio", tags=["portfolio"])


@router.get("", response_model=PortfolioResponse)
async def get_portfolio_metrics(user: CurrentUser, repo: EventRepositoryDep) -> PortfolioResponse:
    events = await repo.list_for_user(user)
    return PortfolioResponse(metrics=compute_portfolio_metrics(events))
