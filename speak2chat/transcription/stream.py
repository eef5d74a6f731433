"""Cancellable live-text sequence produced by a transcription session."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_END = object()


class _Failure:
    __slots__ = ("error",)

    def __init__(self, error: Exception):
        self.error = error


class LiveTextStream:
    """Async iterator of transcription text, delivered in emission order.

    The producer calls `yield_text` and `finish`. A consumer that walks away
    (`aclose`, leaving `async with`, or being cancelled while waiting for the
    next element) triggers `on_dispose` exactly once, unless the stream was
    already finished.

    Leaving an `async for` loop with `break` does not count as walking away:
    the producing session holds on to the stream, so no finalizer will run
    either. Consumers that may stop early must iterate inside
    `async with stream:` or call `aclose()` themselves.
    """

    def __init__(self, on_dispose: Optional[Callable[[], None]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_dispose = on_dispose
        self._finished = False
        self._exhausted = False

    @property
    def finished(self) -> bool:
        return self._finished

    def yield_text(self, text: str) -> None:
        if self._finished:
            logger.debug("Dropping text for finished stream")
            return
        self._queue.put_nowait(text)

    def finish(self, error: Optional[Exception] = None) -> None:
        """Terminate the stream, optionally with an error. Idempotent."""
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_Failure(error) if error is not None else _END)

    def __aiter__(self) -> "LiveTextStream":
        return self

    async def __anext__(self) -> str:
        if self._exhausted:
            raise StopAsyncIteration

        try:
            item = await self._queue.get()
        except asyncio.CancelledError:
            self._dispose()
            raise

        if item is _END:
            self._exhausted = True
            raise StopAsyncIteration
        if isinstance(item, _Failure):
            self._exhausted = True
            raise item.error
        return item

    async def aclose(self) -> None:
        """Stop consuming. Tears the producing session down if still open."""
        self._dispose()
        self._exhausted = True

    async def __aenter__(self) -> "LiveTextStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _dispose(self) -> None:
        if self._finished:
            return
        on_dispose, self._on_dispose = self._on_dispose, None
        if on_dispose is not None:
            logger.debug("Live-text stream disposed by consumer")
            on_dispose()
