"""Operation poller: wait for a queued provider operation to finish."""

import asyncio
from collections.abc import Awaitable, Callable
import time

from .clients.clc import ClcClient
from .constants import Polling, Timeouts
from .errors import OperationFailedError, OperationTimeoutError
from .logging_config import get_logger
from .schemas import AsyncOperation

logger = get_logger(__name__)


class OperationPoller:
    """Polls an operation's status at a fixed interval until it succeeds.

    Each status fetch is preceded by one ``interval`` sleep. The wait ends with
    ``OperationFailedError`` when the provider reports failure and with
    ``OperationTimeoutError`` once ``timeout`` seconds or ``max_attempts``
    fetches are used up; ``None`` disables either bound. No sleep starts that
    would end past the deadline. Errors while fetching the status are not
    retried. Cancelling the awaiting task interrupts the sleep.
    """

    def __init__(
        self,
        interval: float = Polling.STATUS_WAIT_SECONDS,
        timeout: float | None = Timeouts.OPERATION,
        max_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval = interval
        self.timeout = timeout
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._clock = clock

    def _check_bounds(self, operation: AsyncOperation, attempts: int, started: float) -> None:
        """Raise unless one more sleep and fetch fit within the bounds."""
        elapsed = self._clock() - started
        out_of_attempts = self.max_attempts is not None and attempts >= self.max_attempts
        out_of_time = self.timeout is not None and elapsed + self.interval > self.timeout
        if out_of_attempts or out_of_time:
            logger.error(
                "operation_poll_timeout",
                status_id=operation.id,
                attempts=attempts,
                elapsed=round(elapsed, 1),
            )
            raise OperationTimeoutError(operation.id, attempts, elapsed)

    async def wait_for_completion(
        self,
        client: ClcClient,
        operation: AsyncOperation,
        label: str = "operation",
    ) -> AsyncOperation:
        """Block until ``operation`` reports success.

        Args:
            client: Authenticated client used for status fetches
            operation: Handle returned by the submission
            label: Name used in progress logs (e.g. "powerOn", "deletion")

        Returns:
            The final, succeeded operation status

        Raises:
            OperationFailedError: Provider reported a failed status
            OperationTimeoutError: Deadline or attempt limit reached
            RequestError: A status fetch failed
        """
        started = self._clock()
        attempts = 0
        current = operation

        while not current.has_succeeded:
            if current.has_failed:
                logger.error("operation_failed", label=label, status_id=current.id)
                raise OperationFailedError(current.id, current.status.value)

            self._check_bounds(current, attempts, started)

            await self._sleep(self.interval)
            current = await client.get_operation_status(current)
            attempts += 1

            logger.debug(
                "operation_poll",
                label=label,
                status_id=current.id,
                status=current.status.value if current.status else None,
                attempt=attempts,
            )

        logger.info("operation_succeeded", label=label, status_id=current.id, polls=attempts)
        return current
