"""
Bounded retry with a fixed backoff schedule for network sinks.

Outcomes are classified as success, transient failure (5xx, connect
failure, timeout) or terminal failure (anything else). Only transient
failures are retried; exhausting the attempts raises RetryExhaustedError so
callers can tell "gave up after retries" from "rejected immediately".
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx
import structlog

from ferry.core.exceptions import RetryExhaustedError, TerminalIOError, TransientIOError
from ferry.core.metrics import MetricsSink, NullMetrics

logger = structlog.get_logger()

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry configuration.

    Attributes:
        max_attempts: Total attempts including the first one.
        delays: Backoff in seconds indexed by attempt; the last value is
            reused once the schedule runs out.
    """

    max_attempts: int = 3
    delays: tuple[float, ...] = (0.2, 0.5)
    sleep: Sleep = field(default=asyncio.sleep, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if not self.delays:
            raise ValueError("delays must not be empty")

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based)."""
        return self.delays[min(attempt, len(self.delays) - 1)]

    async def run(
        self,
        attempt: Callable[[], Awaitable[T]],
        connector_type: str | None = None,
        operation: str = "write",
        metrics: MetricsSink | None = None,
    ) -> T:
        """
        Run ``attempt`` until it succeeds, fails terminally, or attempts run out.

        Args:
            attempt: Zero-argument coroutine factory. It signals failures by
                raising TransientIOError or TerminalIOError.
            connector_type: Connector kind for logs and errors.
            operation: Operation name for logs and errors.
            metrics: Metrics handle counting retries.

        Returns:
            Whatever ``attempt`` returned on success.

        Raises:
            TerminalIOError: Immediately, on a terminal failure.
            RetryExhaustedError: After ``max_attempts`` transient failures.
        """
        metrics = metrics or NullMetrics()

        for index in range(self.max_attempts):
            try:
                result = await attempt()
                if index > 0:
                    logger.info(
                        "retry_succeeded",
                        connector_type=connector_type,
                        operation=operation,
                        attempts=index + 1,
                    )
                return result
            except TransientIOError as e:
                logger.warning(
                    "retry_transient_failure",
                    connector_type=connector_type,
                    operation=operation,
                    attempt=index + 1,
                    max_attempts=self.max_attempts,
                    error=str(e),
                )
                if index == self.max_attempts - 1:
                    raise RetryExhaustedError(
                        f"{connector_type or 'connector'} {operation} failed after "
                        f"{self.max_attempts} attempts: {e.message}",
                        attempts=self.max_attempts,
                        connector_type=connector_type,
                        operation=operation,
                        status_code=e.status_code,
                    ) from e
                metrics.retry_attempted(connector_type or "unknown", operation)
                await self.sleep(self.delay_for(index))

        raise RuntimeError("unreachable: retry loop exited without a result")


def classify_response(
    response: httpx.Response,
    connector_type: str | None = None,
    operation: str = "write",
) -> httpx.Response:
    """
    Return ``response`` if it is a success, otherwise raise the matching error.

    Raises:
        TransientIOError: For 5xx statuses.
        TerminalIOError: For any other non-success status.
    """
    if response.is_success:
        return response

    status = response.status_code
    message = f"{connector_type or 'http'} {operation} returned {status}: {response.text[:512]}"
    if status >= 500:
        raise TransientIOError(message, connector_type, operation, status_code=status)
    raise TerminalIOError(message, connector_type, operation, status_code=status)


def classify_exception(
    exc: Exception,
    connector_type: str | None = None,
    operation: str = "write",
) -> TransientIOError | TerminalIOError:
    """
    Map a transport exception onto the retry taxonomy.

    Connection-establishment failures and timeouts are transient; every
    other error is terminal.
    """
    message = f"{connector_type or 'http'} {operation} failed: {exc}"
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)):
        return TransientIOError(message, connector_type, operation)
    return TerminalIOError(message, connector_type, operation)
