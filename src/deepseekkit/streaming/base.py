"""Streaming transport interface and the stream object handed to callers."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import AsyncGenerator, AsyncIterator, Protocol

from deepseekkit.core.request_builder import PreparedRequest
from deepseekkit.llm.types import ChatCompletionChunk
from deepseekkit.streaming.sse import EventStreamDecoder

logger = logging.getLogger(__name__)


class StreamTransport(Protocol):
    """Protocol that both streaming transports implement.

    ``open`` returns an async generator that performs the request, feeds the
    response bytes through ``decoder`` and yields chunks. Closing the
    generator (or cancelling the task iterating it) must release the
    connection or child process before ``aclose`` returns.
    """

    name: str

    def open(
        self,
        request: PreparedRequest,
        decoder: EventStreamDecoder,
    ) -> AsyncGenerator[ChatCompletionChunk, None]: ...


class ChatCompletionStream:
    """Async iterator over the chunks of one streamed completion.

    Use it as an async context manager to release the transport as soon as
    the block exits, even when iteration stops early::

        async with client.chat.create_streaming_completion(request) as stream:
            async for chunk in stream:
                ...

    Plain ``async for`` also works; the transport is then released when the
    sequence ends, fails, or ``aclose()`` is called.
    """

    def __init__(
        self,
        chunks: AsyncGenerator[ChatCompletionChunk, None],
        decoder: EventStreamDecoder,
        transport_name: str,
    ):
        self._chunks = chunks
        self._decoder = decoder
        self.transport_name = transport_name
        self._closed = False
        self._released = False

    @property
    def dropped_chunks(self) -> int:
        """Number of payloads skipped because they could not be parsed."""
        return self._decoder.dropped

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[ChatCompletionChunk]:
        return self

    async def __anext__(self) -> ChatCompletionChunk:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._chunks.__anext__()
        except BaseException:
            # Also covers StopAsyncIteration and cancellation.
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._released:
            return
        self._closed = True
        self._released = True
        await self._chunks.aclose()
        if self._decoder.dropped:
            logger.info(
                "Stream over %s closed with %d dropped payload(s)",
                self.transport_name,
                self._decoder.dropped,
            )

    async def __aenter__(self) -> ChatCompletionStream:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
