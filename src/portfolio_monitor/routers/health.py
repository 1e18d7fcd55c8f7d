"""Liveness probe over the backing stores."""
import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from portfolio_monitor.core import PortfolioMonitorError
from portfolio_monitor.deps import ComponentsDep
from portfolio_monitor.schemas import HealthResponse
from portfolio_monitor.utils import isoformat_z, utcnow

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health(components: ComponentsDep):
    """Probe the events table and the user database; 503 if either fails."""
    results = await asyncio.gather(
        components.events.probe(),
        components.users.probe(),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, PortfolioMonitorError):
            return JSONResponse(
                status_code=503,
                content={"success": False, "status": "unhealthy", "error": result.message},
            )
        if isinstance(result, Exception):
            raise result
    return HealthResponse(status="healthy", timestamp=isoformat_z(utcnow()))
