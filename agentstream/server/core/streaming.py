"""
SSE transport for agent runs.

SSEStream is the writable side of a streaming response body; its readiness
signal resolves only after the response has taken the previous frame, which
applies backpressure to the bridge. Aborting the stream (client disconnect)
fires the run's cancellation callback.
"""

import asyncio
from typing import AsyncGenerator, Callable, Optional

from fastapi.responses import StreamingResponse

from ...agents.core.bridge import StreamClosedError
from ...utils.logging import get_logger

_EOF = object()

logger = get_logger('server.streaming')


class SSEStream:
    """Single-writer frame queue drained by the response body iterator"""

    def __init__(self, on_abort: Optional[Callable[[], object]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._aborted = asyncio.Event()
        self._closed = False
        self._on_abort = on_abort
        self.close_count = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    async def ready(self) -> None:
        if self._closed:
            raise StreamClosedError("stream is closed")

        joiner = asyncio.ensure_future(self._queue.join())
        aborter = asyncio.ensure_future(self._aborted.wait())
        try:
            await asyncio.wait({joiner, aborter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            joiner.cancel()
            aborter.cancel()

        if self._closed:
            raise StreamClosedError("stream was aborted")

    def write_nowait(self, frame: str) -> None:
        if self._closed:
            raise StreamClosedError("stream is closed")
        self._queue.put_nowait(frame)

    def close(self) -> None:
        """End the body after the queued frames; no-op when already closed"""
        if self._closed:
            return
        self._closed = True
        self.close_count += 1
        self._queue.put_nowait(_EOF)

    def abort(self) -> None:
        """Transport went away: drop queued frames and cancel the run"""
        if self._aborted.is_set():
            return
        was_closed = self._closed
        self._closed = True
        self._aborted.set()

        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()

        if not was_closed:
            logger.debug("Client disconnected before the run finished")
            if self._on_abort is not None:
                self._on_abort()

    async def body(self) -> AsyncGenerator[str, None]:
        try:
            while True:
                frame = await self._queue.get()
                try:
                    if frame is _EOF:
                        break
                    yield frame
                finally:
                    self._queue.task_done()
        finally:
            self.abort()


class EventStreamResponse(StreamingResponse):
    """text/event-stream response that aborts its SSEStream when the client goes away"""

    def __init__(self, stream: SSEStream, **kwargs):
        headers = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}
        headers.update(kwargs.pop("headers", None) or {})
        super().__init__(stream.body(), media_type="text/event-stream", headers=headers, **kwargs)
        self.stream = stream

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.stream.abort()
