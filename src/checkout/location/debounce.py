"""Debounced, cancellable lookups.

A lookup only fires once its input has been idle for the configured window.
Submitting a new value cancels whatever is pending (timer or in-flight call),
and a result is applied only if the value that produced it is still the latest
one submitted and the caller confirms it is still current.
"""

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class DebouncedLookup:
    def __init__(
        self,
        lookup: Callable[[str], Awaitable[Any]],
        apply: Callable[[str, Any], None],
        is_current: Callable[[str], bool] | None = None,
        delay: float = 0.5,
    ) -> None:
        self._lookup = lookup
        self._apply = apply
        self._is_current = is_current or (lambda value: True)
        self.delay = delay
        self._task: asyncio.Task | None = None
        self._latest: str | None = None
        # True once the current task is past its idle window and calling ``lookup``
        self._calling = False
        self.fired: list[str] = []

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def submit(self, value: str) -> None:
        """Schedule a lookup for ``value``, superseding any earlier submission."""
        self._latest = value
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(value, self.delay))

    def cancel(self) -> None:
        if self.pending:
            self._task.cancel()
        self._task = None
        self._calling = False

    async def flush(self) -> None:
        """Wait for the latest submission to settle, skipping any remaining idle time."""
        if not self.pending:
            return
        if not self._calling:
            self._task.cancel()
            self._task = asyncio.get_running_loop().create_task(self._run(self._latest, 0))
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def _run(self, value: str, delay: float) -> None:
        await asyncio.sleep(delay)
        self._calling = True
        self.fired.append(value)
        try:
            result = await self._lookup(value)
        except Exception as exc:
            logger.warning("Lookup failed", value=value, error=str(exc))
            return

        if value != self._latest or not self._is_current(value):
            logger.debug("Discarding superseded lookup result", value=value, latest=self._latest)
            return
        self._apply(value, result)
