"""
Cancellation tokens threaded through repository calls.

A token is an explicit value handed to every operation instead of an
ambient signal. Awaiting through ``CancellationToken.run`` races the
network round trip against the token, so firing it aborts in-flight waits
and lets streaming cursors unwind through their ``finally`` blocks.

Usage:
    lifetime = ApplicationLifetime()
    repo = MongoRepository(db, "users", User, UserComposer(), cancel=lifetime.stopping)
    ...
    lifetime.stop()  # every pending call raises OperationCancelledError
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from mongo_repository.core.errors import OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """A one-shot cancellation signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @classmethod
    def none(cls) -> "CancellationToken":
        """Return a token that nobody else holds, so it never fires."""
        return cls()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Idempotent."""
        if not self._event.is_set():
            logger.debug("Cancellation requested")
        self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if the token has fired."""
        if self._event.is_set():
            raise OperationCancelledError("Operation cancelled")

    async def wait(self) -> None:
        """Suspend until the token fires."""
        await self._event.wait()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        If the calling task is itself cancelled, the in-flight awaitable is
        cancelled and awaited before the cancellation propagates.

        Args:
            awaitable: Coroutine or future performing the network wait

        Returns:
            The awaitable's result

        Raises:
            OperationCancelledError: If the token fired before completion.
                The in-flight task is cancelled before this is raised.
        """
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise OperationCancelledError("Operation cancelled")

        operation = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {operation, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            operation.cancel()
            await asyncio.gather(operation, return_exceptions=True)
            raise
        finally:
            waiter.cancel()

        if operation in done:
            return operation.result()

        operation.cancel()
        # Drain the cancelled task so its exception is retrieved.
        await asyncio.gather(operation, return_exceptions=True)
        raise OperationCancelledError("Operation cancelled")


class ApplicationLifetime:
    """
    Process lifetime owner supplying the shutdown signal.

    Hosting code calls ``stop()`` from its shutdown hook; repositories built
    with ``cancel=lifetime.stopping`` abort their pending work.
    """

    def __init__(self) -> None:
        self.stopping = CancellationToken()

    def stop(self) -> None:
        logger.info("Application stopping; cancelling in-flight repository operations")
        self.stopping.cancel()
