"""Main module for the portfolio monitor API."""
import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from portfolio_monitor.config import Settings, configure_logging
from portfolio_monitor.container import Components, build_components
from portfolio_monitor.core import register_exception_handlers
from portfolio_monitor.routers import (auth_router, events_router,
                                       health_router, portfolio_router,
                                       users_router, watchlist_router)

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    components: Components | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    Args:
        settings: Configuration; read from the environment when omitted.
        components: Pre-built components (tests). When omitted, lifespan
            builds them from settings at startup.
    """

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Create stores and services at startup; flush and close them on shutdown."""
        built = components
        if built is None:
            # Blocking: may wait for the database when durable sessions are on
            built = await asyncio.to_thread(build_components, settings or Settings.from_env())
        fastapi_app.state.components = built

        yield

        try:
            await built.aclose()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error during shutdown: %s", exc)

    fastapi_app = FastAPI(
        title="Portfolio Monitor",
        description="Market events, AI analysis and watchlists for a user's portfolio",
        version="0.1.0",
        lifespan=lifespan,
    )
    register_exception_handlers(fastapi_app)

    fastapi_app.include_router(auth_router)
    fastapi_app.include_router(users_router)
    fastapi_app.include_router(events_router)
    fastapi_app.include_router(portfolio_router)
    fastapi_app.include_router(watchlist_router)
    fastapi_app.include_router(health_router)
    return fastapi_app


app = create_app()


def run():
    """Run the server (uvicorn). Use for `poetry run start`."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
