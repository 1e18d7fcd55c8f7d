"""DynamoDB access for events, the user/event junction and watchlists."""
from portfolio_monitor.dynamo.client import (BATCH_GET_LIMIT, DynamoTable,
                                             UnprocessedKeysError,
                                             build_dynamodb_resource,
                                             from_dynamo)

__all__ = [
    "BATCH_GET_LIMIT",
    "DynamoTable",
    "UnprocessedKeysError",
    "build_dynamodb_resource",
    "from_dynamo",
]
