import copy
from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from portfolio_monitor.config import SessionBackend, Settings
from portfolio_monitor.container import Components
from portfolio_monitor.db.sessions import create_db_engine, init_db
from portfolio_monitor.dynamo import DynamoTable
from portfolio_monitor.main import create_app
from portfolio_monitor.services import (EventRepository, InMemorySessionStore,
                                        InterestSignal, InterestSignaler,
                                        PasswordHasher, SessionManager,
                                        SignalDispatcher, UserDirectory,
                                        WatchlistService, WebhookTester)

EVENTS_TABLE = "test-events"
USER_EVENTS_TABLE = "test-user-events"
WATCHLIST_TABLE = "test-watchlists"
SLACK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"


# ---- DynamoDB doubles (boto3 resource / Table call shapes) ----


class FakeTable:
    def __init__(self, name: str, key_names: tuple[str, ...], page_size: int = 1000):
        self.name = name
        self.key_names = key_names
        self.page_size = page_size
        self.items: dict[tuple, dict] = {}
        self.calls: list[str] = []
        self.fail_with: Exception | None = None

    def _key(self, key: dict) -> tuple:
        return tuple(key[k] for k in self.key_names)

    def _record(self, op: str) -> None:
        self.calls.append(op)
        if self.fail_with is not None:
            raise self.fail_with

    def get_item(self, Key):
        self._record("get_item")
        item = self.items.get(self._key(Key))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def put_item(self, Item):
        self._record("put_item")
        self.items[self._key(Item)] = copy.deepcopy(Item)
        return {}

    def query(self, KeyConditionExpression, ExclusiveStartKey=None, **_):
        self._record("query")
        key, value = KeyConditionExpression.get_expression()["values"]
        matching = [copy.deepcopy(i) for i in self.items.values() if i.get(key.name) == value]
        start = ExclusiveStartKey["_offset"] if ExclusiveStartKey else 0
        page = matching[start : start + self.page_size]
        response = {"Items": page}
        if start + self.page_size < len(matching):
            response["LastEvaluatedKey"] = {"_offset": start + self.page_size}
        return response

    def scan(self, Limit=None, **_):
        self._record("scan")
        items = list(self.items.values())
        return {"Items": copy.deepcopy(items[:Limit] if Limit else items)}


class FakeDynamoResource:
    def __init__(self):
        self.tables: dict[str, FakeTable] = {}
        self.batch_calls: list[int] = []
        # How many batch calls should hold back their last key
        self.unprocessed_rounds = 0
        self.fail_with: Exception | None = None

    def add_table(self, name: str, key_names: tuple[str, ...], **kwargs) -> FakeTable:
        self.tables[name] = FakeTable(name, key_names, **kwargs)
        return self.tables[name]

    def Table(self, name: str) -> FakeTable:
        return self.tables[name]

    def batch_get_item(self, RequestItems):
        if self.fail_with is not None:
            raise self.fail_with
        responses: dict[str, list] = {}
        unprocessed: dict[str, dict] = {}
        for name, spec in RequestItems.items():
            table = self.tables[name]
            keys = list(spec["Keys"])
            self.batch_calls.append(len(keys))
            if self.unprocessed_rounds > 0 and keys:
                self.unprocessed_rounds -= 1
                unprocessed[name] = {"Keys": [keys.pop()]}
            found = []
            for key in keys:
                item = table.items.get(table._key(key))
                if item is not None:
                    found.append(copy.deepcopy(item))
            # Real DynamoDB returns batch results in no particular order
            responses[name] = list(reversed(found))
        return {"Responses": responses, "UnprocessedKeys": unprocessed}


@pytest.fixture()
def dynamo() -> FakeDynamoResource:
    resource = FakeDynamoResource()
    resource.add_table(EVENTS_TABLE, ("event_id",))
    resource.add_table(USER_EVENTS_TABLE, ("user_id", "event_id"))
    resource.add_table(WATCHLIST_TABLE, ("user_id",))
    return resource


def make_event(
    event_id: str,
    ticker: str = "AAPL",
    *,
    timestamp: str = "2026-10-15T12:00:00.000Z",
    event_type: str = "NEWS",
    status: str = "ANALYZED",
    sentiment: str | None = "0.5",
    **extra,
) -> dict:
    item = {
        "event_id": event_id,
        "ticker": ticker,
        "event_type": event_type,
        "timestamp": timestamp,
        "headline": f"{ticker} headline {event_id}",
        "url": f"https://example.com/{event_id}",
        "status": status,
        "detected_at": timestamp,
    }
    if sentiment is not None:
        item["sentiment_score"] = Decimal(sentiment)
    item.update(extra)
    return item


def seed_event(dynamo: FakeDynamoResource, item: dict, *user_ids: str) -> dict:
    """Store an event body and grant it to the given users."""
    dynamo.tables[EVENTS_TABLE].put_item(Item=item)
    for user_id in user_ids:
        dynamo.tables[USER_EVENTS_TABLE].put_item(Item={"user_id": user_id, "event_id": item["event_id"]})
    dynamo.tables[EVENTS_TABLE].calls.clear()
    dynamo.tables[USER_EVENTS_TABLE].calls.clear()
    return item


# ---- Interest signals / webhooks / clock ----


class RecordingSignaler(InterestSignaler):
    def __init__(self, error: Exception | None = None):
        self.signals: list[InterestSignal] = []
        self.error = error

    async def send(self, signal: InterestSignal) -> None:
        self.signals.append(signal)
        if self.error is not None:
            raise self.error


class WebhookRecorder:
    """httpx.MockTransport handler: records requests, replies with `status` or raises `error`."""

    def __init__(self, status: int = 200):
        self.status = status
        self.error: Exception | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, text="ok" if self.status < 400 else "no_service")


class FakeClock:
    def __init__(self, start: datetime = datetime(2026, 10, 17, 9, 30, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def signaler() -> RecordingSignaler:
    return RecordingSignaler()


@pytest.fixture()
def webhook_recorder() -> WebhookRecorder:
    return WebhookRecorder()


# ---- Relational DB ----


@pytest.fixture()
def engine():
    test_engine = create_db_engine("sqlite://")
    init_db(test_engine)
    try:
        yield test_engine
    finally:
        test_engine.dispose()


@pytest.fixture(scope="session")
def password_hasher() -> PasswordHasher:
    # Minimum bcrypt cost keeps the suite fast
    return PasswordHasher(rounds=4)


# ---- App ----


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        session_backend=SessionBackend.MEMORY,
        bcrypt_rounds=4,
        events_table=EVENTS_TABLE,
        user_events_table=USER_EVENTS_TABLE,
        watchlist_table=WATCHLIST_TABLE,
    )


@pytest.fixture()
def components(
    settings: Settings,
    engine,
    dynamo: FakeDynamoResource,
    signaler: RecordingSignaler,
    webhook_recorder: WebhookRecorder,
    password_hasher: PasswordHasher,
) -> Components:
    dispatcher = SignalDispatcher(signaler)
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_recorder))
    return Components(
        settings=settings,
        engine=engine,
        users=UserDirectory(engine),
        passwords=password_hasher,
        sessions=SessionManager(InMemorySessionStore()),
        events=EventRepository(
            DynamoTable(dynamo, EVENTS_TABLE),
            DynamoTable(dynamo, USER_EVENTS_TABLE),
        ),
        watchlists=WatchlistService(
            DynamoTable(dynamo, WATCHLIST_TABLE),
            dispatcher,
            webhook_prefix=settings.webhook_url_prefix,
        ),
        webhooks=WebhookTester(http_client, prefix=settings.webhook_url_prefix),
        dispatcher=dispatcher,
        http_client=http_client,
    )


@pytest.fixture()
def client(settings: Settings, components: Components) -> Generator[TestClient, None, None]:
    with TestClient(create_app(settings, components)) as test_client:
        yield test_client


def signup(client: TestClient, username: str = "alice", password: str = "secret123") -> dict:
    response = client.post("/api/auth/signup", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["user"]


@pytest.fixture()
def alice(client: TestClient) -> dict:
    """Signed-up user whose session cookie is held by `client`."""
    return signup(client)


def make_request(cookies: dict[str, str] | None = None, scheme: str = "http") -> Request:
    headers = []
    if cookies:
        cookie_header = "; ".join(f"{k}={v}" for k, v in cookies.items())
        headers.append((b"cookie", cookie_header.encode()))
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": scheme,
            "server": ("testserver", 443 if scheme == "https" else 80),
            "root_path": "",
            "path": "/",
            "query_string": b"",
            "headers": headers,
        }
    )
