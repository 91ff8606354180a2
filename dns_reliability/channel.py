"""
Bounded result channel between the pollers and the aggregator.

Many producers, one consumer. Producers block while the channel is
full. The coordinator closes the channel once every producer has
stopped; the consumer then drains what is left and sees ChannelClosed.
"""

import asyncio

from .models import ProbeResult


RESULT_BUFFER_SIZE = 100

_CLOSED = object()


class ChannelClosed(Exception):
    """Raised on put after close, and on get once the channel is drained."""


class ResultChannel:
    """FIFO of ProbeResults with an explicit end of stream."""

    def __init__(self, maxsize: int = RESULT_BUFFER_SIZE):
        if maxsize <= 0:
            raise ValueError("Result channel must be bounded")
        self._queue: asyncio.Queue = asyncio.Queue(maxsize)
        self._closed = False
        self._drained = False

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        """Number of buffered items, the end marker included."""
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()

    async def put(self, result: ProbeResult) -> None:
        """
        Append a result, waiting while the channel is full.

        Raises:
            ChannelClosed: If the channel was closed
        """
        if self._closed:
            raise ChannelClosed("put on closed result channel")
        await self._queue.put(result)

    async def get(self) -> ProbeResult:
        """
        Remove and return the oldest result.

        Raises:
            ChannelClosed: Once the channel is closed and empty
        """
        if self._drained:
            raise ChannelClosed("result channel is closed")
        item = await self._queue.get()
        if item is _CLOSED:
            self._drained = True
            raise ChannelClosed("result channel is closed")
        return item

    async def close(self) -> None:
        """
        Mark the end of the stream.

        Must only be called once no producer will put again. Waits for
        room behind the buffered results, so the consumer has to be
        draining. Closing twice is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)
