"""Trailing-edge debouncer for rapid-fire change notifications."""
import asyncio
import inspect
import logging
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    """Run ``callback`` once, ``delay_seconds`` after the last trigger.

    Each trigger cancels the pending delayed call and starts a new one; the
    arguments of the latest trigger win. Must be used from inside a running
    event loop.
    """

    def __init__(self, delay_seconds: float, callback: Callable[..., Any]):
        """
        Args:
            delay_seconds: Quiet period required before the callback runs
            callback: Plain function or coroutine function
        """
        self.delay_seconds = delay_seconds
        self._callback = callback
        self._task: Optional[asyncio.Task] = None
        self._args: Tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self, *args: Any):
        """Restart the timer with new arguments."""
        self._args = args
        if self.pending:
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._delayed())

    def cancel(self):
        """Drop the pending call, if any."""
        if self.pending:
            self._task.cancel()
        self._task = None
        self._args = ()

    async def flush(self):
        """Run the pending call now instead of waiting out the delay."""
        if not self.pending:
            return
        task = self._task
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None
        await self._invoke()

    async def _delayed(self):
        await asyncio.sleep(self.delay_seconds)
        if self._task is asyncio.current_task():
            self._task = None
        await self._invoke()

    async def _invoke(self):
        args, self._args = self._args, ()
        try:
            result = self._callback(*args)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Debounced callback failed")
