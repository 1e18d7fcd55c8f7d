"""Interest-registration signals to the detection pipeline.

When a user adds tickers to a watchlist, the pipeline is told so it can start
detecting events for them. The signal is best-effort: it is dispatched as a
background task, failures are logged, and the watchlist write never waits on
or rolls back because of it.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InterestSignal:
    user_id: str
    added: list[str]
    removed: list[str]

    def to_payload(self) -> dict:
        return {"type": "watchlist_interest", **asdict(self)}


class InterestSignaler(ABC):
    """Delivers an InterestSignal to the pipeline."""

    @abstractmethod
    async def send(self, signal: InterestSignal) -> None:
        """Deliver the signal; raise on failure."""


class LoggingInterestSignaler(InterestSignaler):
    """Used when no pipeline target is configured: records the signal in the log."""

    async def send(self, signal: InterestSignal) -> None:
        logger.info(
            "Interest signal (no pipeline configured): user=%s added=%s removed=%s",
            signal.user_id,
            signal.added,
            signal.removed,
        )


class LambdaInterestSignaler(InterestSignaler):
    """Invokes the pipeline's Lambda function asynchronously (InvocationType=Event)."""

    def __init__(self, function_name: str, lambda_client) -> None:
        """Initialize the signaler.

        Args:
            function_name: Name or ARN of the pipeline function.
            lambda_client: boto3 Lambda client.
        """
        self._function_name = function_name
        self._client = lambda_client

    async def send(self, signal: InterestSignal) -> None:
        await asyncio.to_thread(
            self._client.invoke,
            FunctionName=self._function_name,
            InvocationType="Event",
            Payload=json.dumps(signal.to_payload()),
        )
        logger.info(
            "Dispatched interest signal for user %s (%d added, %d removed)",
            signal.user_id,
            len(signal.added),
            len(signal.removed),
        )


class SignalDispatcher:
    """Runs signaler.send as fire-and-forget asyncio tasks with a logged error channel."""

    def __init__(self, signaler: InterestSignaler) -> None:
        self._signaler = signaler
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _send(self, signal: InterestSignal) -> None:
        try:
            await self._signaler.send(signal)
        except asyncio.CancelledError:
            logger.warning("Interest signal for user %s cancelled", signal.user_id)
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.error(
                "Interest signal for user %s failed: %s: %s",
                signal.user_id,
                type(exc).__name__,
                exc,
            )

    def dispatch(self, signal: InterestSignal) -> asyncio.Task:
        """Schedule delivery on the running loop and return immediately."""
        task = asyncio.create_task(self._send(signal))
        # Keep a strong reference until done so the task is not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: float | None = 5.0) -> None:
        """Wait for in-flight signals; cancel whatever is still running after `timeout`."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, still_pending = await asyncio.wait(tasks, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            logger.warning("Cancelled %d interest signals at shutdown", len(still_pending))
            await asyncio.gather(*still_pending, return_exceptions=True)
