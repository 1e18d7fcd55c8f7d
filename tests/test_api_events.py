from botocore.exceptions import EndpointConnectionError
from fastapi.testclient import TestClient

from .conftest import USER_EVENTS_TABLE, make_event, seed_event, signup


def test_events_require_session(client: TestClient):
    assert client.get("/api/events").status_code == 401
    assert client.get("/api/events/evt-1").status_code == 401
    assert client.get("/api/portfolio").status_code == 401


def test_list_events_scoped_to_caller(client: TestClient, dynamo, alice):
    seed_event(dynamo, make_event("evt-1", "AAPL", timestamp="2026-10-14T10:00:00.000Z"), alice["id"])
    seed_event(dynamo, make_event("evt-2", "MSFT", timestamp="2026-10-16T10:00:00.000Z"), alice["id"])
    seed_event(dynamo, make_event("evt-3", "TSLA"), "someone-else")

    response = client.get("/api/events")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [e["event_id"] for e in body["events"]] == ["evt-2", "evt-1"]
    assert body["events"][0]["sentiment_score"] == 0.5


def test_list_events_query_filters(client: TestClient, dynamo, alice):
    seed_event(dynamo, make_event("evt-1", "AAPL", status="ANALYZED"), alice["id"])
    seed_event(dynamo, make_event("evt-2", "AAPL", status="PENDING_ANALYSIS", sentiment=None), alice["id"])
    seed_event(dynamo, make_event("evt-3", "MSFT"), alice["id"])

    by_ticker = client.get("/api/events", params={"ticker": "AAPL"}).json()
    by_status = client.get("/api/events", params={"ticker": "AAPL", "status": "PENDING_ANALYSIS"}).json()
    limited = client.get("/api/events", params={"limit": 1}).json()

    assert by_ticker["count"] == 2
    assert [e["event_id"] for e in by_status["events"]] == ["evt-2"]
    assert "sentiment_score" not in by_status["events"][0]
    assert limited["count"] == 1


def test_list_events_rejects_bad_query(client: TestClient, alice):
    assert client.get("/api/events", params={"limit": 0}).status_code == 400
    assert client.get("/api/events", params={"limit": 5000}).status_code == 400
    assert client.get("/api/events", params={"status": "DONE"}).status_code == 400


def test_get_event_entitled(client: TestClient, dynamo, alice):
    seed_event(
        dynamo,
        make_event(
            "evt-sec",
            "AAPL",
            event_type="SEC_FILING",
            sentiment=None,
            items_reported="2.02,9.01",
            primary_item="2.02",
        ),
        alice["id"],
    )

    response = client.get("/api/events/evt-sec")

    assert response.status_code == 200
    event = response.json()["event"]
    assert event["event_type"] == "SEC_FILING"
    assert event["primary_item"] == "2.02"


def test_get_event_denied_vs_missing(client: TestClient, dynamo, alice):
    seed_event(dynamo, make_event("evt-theirs"), "someone-else")
    dynamo.tables[USER_EVENTS_TABLE].put_item(Item={"user_id": alice["id"], "event_id": "evt-gone"})

    denied = client.get("/api/events/evt-theirs")
    unknown = client.get("/api/events/never-existed")
    missing = client.get("/api/events/evt-gone")

    assert denied.status_code == 403
    assert denied.json() == {"success": False, "error": "You do not have access to this event"}
    assert unknown.status_code == 403
    assert missing.status_code == 404
    assert missing.json() == {"success": False, "error": "Event not found"}


def test_event_store_outage_is_503(client: TestClient, dynamo, alice):
    dynamo.tables[USER_EVENTS_TABLE].fail_with = EndpointConnectionError(endpoint_url="http://dynamodb.local")

    response = client.get("/api/events")

    assert response.status_code == 503
    assert response.json()["success"] is False
    assert "dynamodb.local" not in response.text


def test_portfolio_metrics_for_caller_only(client: TestClient, dynamo, alice):
    seed_event(dynamo, make_event("evt-1", "AAPL", sentiment="0.5"), alice["id"])
    seed_event(dynamo, make_event("evt-2", "AAPL", sentiment="-0.5"), alice["id"])
    seed_event(dynamo, make_event("evt-3", "MSFT", sentiment="0.1", event_type="SEC_FILING"), alice["id"])
    seed_event(dynamo, make_event("evt-4", "MSFT", sentiment=None, status="PENDING_ANALYSIS"), alice["id"])
    seed_event(dynamo, make_event("evt-x", "TSLA"), "someone-else")

    response = client.get("/api/portfolio")

    assert response.status_code == 200
    metrics = response.json()["metrics"]
    assert metrics["total_events"] == 4
    assert metrics["events_by_type"] == {"NEWS": 3, "SEC_FILING": 1}
    assert metrics["events_by_status"] == {"PENDING_ANALYSIS": 1, "ANALYZED": 3, "FAILED": 0}
    assert metrics["sentiment_distribution"] == {"positive": 1, "neutral": 1, "negative": 1}
    assert [t["ticker"] for t in metrics["top_tickers"]] == ["AAPL", "MSFT"]
    assert len(metrics["recent_activity"]) == 7


def test_portfolio_for_user_without_events(client: TestClient):
    signup(client, "newbie")

    metrics = client.get("/api/portfolio").json()["metrics"]

    assert metrics["total_events"] == 0
    assert metrics["top_tickers"] == []
    assert [d["count"] for d in metrics["recent_activity"]] == [0] * 7
