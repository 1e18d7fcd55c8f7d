"""Composition root: builds every store and service once per process.

main.lifespan calls build_components() at startup and attaches the result to
app.state; route handlers reach the pieces through deps.py. Tests build a
Components by hand with fakes and pass it to create_app().
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta

import boto3
import httpx
from sqlalchemy.engine import Engine

from portfolio_monitor.config import Settings
from portfolio_monitor.db.sessions import create_db_engine, init_db
from portfolio_monitor.dynamo import DynamoTable, build_dynamodb_resource
from portfolio_monitor.services import (EventRepository, InterestSignaler,
                                        LambdaInterestSignaler,
                                        LoggingInterestSignaler,
                                        PasswordHasher, SessionManager,
                                        SignalDispatcher, UserDirectory,
                                        WatchlistService, WebhookTester,
                                        build_session_store)

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Process-wide handles shared by request handlers."""

    settings: Settings
    engine: Engine
    users: UserDirectory
    passwords: PasswordHasher
    sessions: SessionManager
    events: EventRepository
    watchlists: WatchlistService
    webhooks: WebhookTester
    dispatcher: SignalDispatcher
    http_client: httpx.AsyncClient

    async def aclose(self) -> None:
        """Flush background signals and release clients. Call from lifespan shutdown."""
        await self.dispatcher.drain()
        for name, closer in (
            ("http client", self.http_client.aclose),
            ("session store", self.sessions.store.close),
        ):
            try:
                await closer()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing %s: %s", name, exc)
        await asyncio.to_thread(self.engine.dispose)


def build_signaler(settings: Settings) -> InterestSignaler:
    """Lambda signaler when a pipeline function is configured, else log-only."""
    if settings.pipeline_interest_function:
        client = boto3.client("lambda", region_name=settings.aws_region)
        return LambdaInterestSignaler(settings.pipeline_interest_function, client)
    logger.info("PIPELINE_INTEREST_FUNCTION not set; interest signals are only logged")
    return LoggingInterestSignaler()


def build_components(settings: Settings) -> Components:
    """Create engine, tables, stores and services from settings.

    Blocking (waits for the database when durable sessions are configured);
    run it in a worker thread from async code.

    Raises:
        SessionStoreUnavailable: durable sessions requested, database unreachable.
    """
    engine = create_db_engine(settings.database_url, echo=settings.sql_echo)
    session_store = build_session_store(settings, engine)
    init_db(engine)

    resource = build_dynamodb_resource(settings.aws_region, settings.dynamodb_endpoint_url)
    events_table = DynamoTable(resource, settings.events_table)
    user_events_table = DynamoTable(resource, settings.user_events_table)
    watchlist_table = DynamoTable(resource, settings.watchlist_table)

    dispatcher = SignalDispatcher(build_signaler(settings))
    http_client = httpx.AsyncClient(timeout=settings.webhook_timeout_seconds)

    return Components(
        settings=settings,
        engine=engine,
        users=UserDirectory(engine),
        passwords=PasswordHasher(rounds=settings.bcrypt_rounds),
        sessions=SessionManager(
            session_store,
            ttl=timedelta(seconds=settings.session_ttl_seconds),
            cookie_name=settings.session_cookie_name,
            cookie_secure=settings.cookie_secure,
            rolling=settings.session_rolling,
        ),
        events=EventRepository(events_table, user_events_table),
        watchlists=WatchlistService(
            watchlist_table,
            dispatcher,
            webhook_prefix=settings.webhook_url_prefix,
        ),
        webhooks=WebhookTester(
            http_client,
            prefix=settings.webhook_url_prefix,
            timeout=settings.webhook_timeout_seconds,
        ),
        dispatcher=dispatcher,
        http_client=http_client,
    )
