"""DynamoDB helpers for the events, junction and watchlist tables.

boto3 is blocking, so every public coroutine runs the call in a worker thread
with asyncio.to_thread; the event loop keeps serving other requests meanwhile.
"""
import asyncio
import logging
import time
from decimal import Decimal
from typing import Any

import boto3
from boto3.dynamodb.conditions import Key
from botocore.config import Config
from botocore.exceptions import BotoCoreError

logger = logging.getLogger(__name__)

# DynamoDB limits BatchGetItem to 100 keys per request.
BATCH_GET_LIMIT = 100
_UNPROCESSED_MAX_ATTEMPTS = 5
_UNPROCESSED_BACKOFF_SECONDS = 0.05


class UnprocessedKeysError(BotoCoreError):
    """BatchGetItem kept returning unprocessed keys after all retries."""

    fmt = "{remaining} keys left unprocessed in {table_name}"


def build_dynamodb_resource(
    region_name: str,
    endpoint_url: str | None = None,
):
    """Create the boto3 DynamoDB resource with bounded timeouts and retries."""
    config = Config(
        connect_timeout=5,
        read_timeout=10,
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.resource(
        "dynamodb",
        region_name=region_name,
        endpoint_url=endpoint_url,
        config=config,
    )


def from_dynamo(value: Any) -> Any:
    """Convert boto3's Decimal numbers to int/float, recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value


class DynamoTable:
    """Async facade over one DynamoDB table."""

    def __init__(self, resource, table_name: str) -> None:
        """Bind to a table.

        Args:
            resource: boto3 DynamoDB service resource (or a test double).
            table_name: Name of the table.
        """
        self._resource = resource
        self._table_name = table_name
        self._table = resource.Table(table_name)

    @property
    def name(self) -> str:
        return self._table_name

    # ---- sync helpers (run in a worker thread) ----

    def _get_item_sync(self, key: dict) -> dict | None:
        response = self._table.get_item(Key=key)
        item = response.get("Item")
        return from_dynamo(item) if item is not None else None

    def _query_all_sync(self, key_name: str, value: str) -> list[dict]:
        kwargs: dict[str, Any] = {"KeyConditionExpression": Key(key_name).eq(value)}
        items: list[dict] = []
        while True:
            response = self._table.query(**kwargs)
            items.extend(from_dynamo(i) for i in response.get("Items", []))
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                return items
            kwargs["ExclusiveStartKey"] = last_key

    def _batch_get_sync(self, keys: list[dict], batch_size: int) -> list[dict]:
        all_items: list[dict] = []
        for i in range(0, len(keys), batch_size):
            chunk = keys[i : i + batch_size]
            request = {self._table_name: {"Keys": chunk}}
            for attempt in range(1, _UNPROCESSED_MAX_ATTEMPTS + 1):
                response = self._resource.batch_get_item(RequestItems=request)
                all_items.extend(
                    from_dynamo(item)
                    for item in response.get("Responses", {}).get(self._table_name, [])
                )
                # Throttling / partial results come back as UnprocessedKeys
                unprocessed = response.get("UnprocessedKeys") or {}
                if not unprocessed.get(self._table_name):
                    break
                request = unprocessed
                logger.debug(
                    "BatchGetItem on %s left %d keys unprocessed (attempt %d)",
                    self._table_name,
                    len(unprocessed[self._table_name].get("Keys", [])),
                    attempt,
                )
                if attempt < _UNPROCESSED_MAX_ATTEMPTS:
                    time.sleep(_UNPROCESSED_BACKOFF_SECONDS * (2 ** (attempt - 1)))
            else:
                remaining = len(request[self._table_name].get("Keys", []))
                raise UnprocessedKeysError(table_name=self._table_name, remaining=remaining)
        return all_items

    # ---- async API ----

    async def get_item(self, key: dict) -> dict | None:
        """Retrieve a single item by primary key; None when absent."""
        return await asyncio.to_thread(self._get_item_sync, key)

    async def put_item(self, item: dict) -> None:
        """Write a single item, replacing any existing one with the same key."""
        await asyncio.to_thread(lambda: self._table.put_item(Item=item))

    async def query_all(self, key_name: str, value: str) -> list[dict]:
        """Query every item in a partition, following pagination."""
        return await asyncio.to_thread(self._query_all_sync, key_name, value)

    async def batch_get(self, keys: list[dict], batch_size: int = BATCH_GET_LIMIT) -> list[dict]:
        """Batch get items by primary key, chunked to at most `batch_size` keys per call.

        Unprocessed keys are re-requested with backoff; if some remain after the
        last attempt, UnprocessedKeysError is raised instead of returning a
        partial result.
        """
        if not keys:
            return []
        batch_size = min(batch_size, BATCH_GET_LIMIT)
        return await asyncio.to_thread(self._batch_get_sync, keys, batch_size)

    async def probe(self) -> None:
        """Cheap liveness probe: scan a single item."""
        await asyncio.to_thread(lambda: self._table.scan(Limit=1))
