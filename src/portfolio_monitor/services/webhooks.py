"""Slack webhook validation and test notifications."""
import logging

import httpx

from portfolio_monitor.core import (InvalidWebhookUrl, ProviderRejected,
                                    UpstreamTimeout)
from portfolio_monitor.utils import isoformat_z, utcnow

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_PREFIX = "https://hooks.slack.com/services/"

TEST_MESSAGE = "Portfolio Monitor test notification: your Slack webhook is connected."


def validate_webhook_url(url: str, prefix: str = DEFAULT_WEBHOOK_PREFIX) -> str:
    """Check that `url` is a well-formed webhook URL under the provider prefix.

    Returns the URL stripped of surrounding whitespace.

    Raises:
        InvalidWebhookUrl: wrong scheme, host or path, or not parseable.
    """
    candidate = (url or "").strip()
    try:
        parsed = httpx.URL(candidate)
        expected = httpx.URL(prefix)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidWebhookUrl() from e
    if (
        parsed.scheme != "https"
        or parsed.host != expected.host
        or parsed.port != expected.port
        or parsed.userinfo
        or not candidate.startswith(prefix)
        or len(parsed.path) <= len(expected.path)
    ):
        raise InvalidWebhookUrl(f"Webhook URL must start with {prefix}")
    return candidate


def build_test_payload() -> dict:
    """Fixed message posted by the webhook test."""
    return {
        "text": TEST_MESSAGE,
        "blocks": [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": f":white_check_mark: {TEST_MESSAGE}"},
            },
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": f"Sent at {isoformat_z(utcnow())}"}],
            },
        ],
    }


class WebhookTester:
    """Probes a user's webhook with a synthetic message."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        prefix: str = DEFAULT_WEBHOOK_PREFIX,
        timeout: float = 5.0,
    ) -> None:
        """Initialize the tester.

        Args:
            client: Shared async HTTP client (closed by the app on shutdown).
            prefix: Required URL prefix for the provider's webhooks.
            timeout: Seconds before the probe gives up.
        """
        self._client = client
        self._prefix = prefix
        self._timeout = timeout

    @property
    def prefix(self) -> str:
        return self._prefix

    def validate(self, url: str) -> str:
        return validate_webhook_url(url, self._prefix)

    async def test(self, webhook_url: str) -> None:
        """Validate, then POST the test payload.

        Raises:
            InvalidWebhookUrl: before any network call.
            UpstreamTimeout: connect failure or timeout.
            ProviderRejected: the provider answered with a non-2xx status.
        """
        url = self.validate(webhook_url)
        try:
            response = await self._client.post(url, json=build_test_payload(), timeout=self._timeout)
        except httpx.TimeoutException as e:
            logger.warning("Webhook test timed out after %.1fs", self._timeout)
            raise UpstreamTimeout("Webhook request timed out") from e
        except httpx.TransportError as e:
            logger.warning("Webhook test could not connect: %s", type(e).__name__)
            raise UpstreamTimeout("Could not reach the webhook provider") from e
        if not response.is_success:
            logger.info("Webhook provider rejected test with status %d", response.status_code)
            raise ProviderRejected(
                f"Webhook provider rejected the request (HTTP {response.status_code})",
                provider_status=response.status_code,
            )
