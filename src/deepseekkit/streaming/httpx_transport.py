"""Native streaming transport built on httpx's async response streaming."""

from __future__ import annotations

import logging
from typing import AsyncGenerator

import httpx

from deepseekkit.core.errors import NetworkError, RequestTimeoutError, error_for_status, is_success
from deepseekkit.core.request_builder import PreparedRequest
from deepseekkit.llm.types import ChatCompletionChunk
from deepseekkit.streaming.sse import EventStreamDecoder

logger = logging.getLogger(__name__)


class HTTPXStreamTransport:
    """Reads the event stream in-process with one ``httpx.AsyncClient`` per stream."""

    name = "httpx"

    def __init__(
        self,
        read_timeout: float | None = None,
        connect_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=connect_timeout,
            pool=connect_timeout,
        )
        # Injectable for tests (httpx.MockTransport).
        self._transport = transport

    async def open(
        self,
        request: PreparedRequest,
        decoder: EventStreamDecoder,
    ) -> AsyncGenerator[ChatCompletionChunk, None]:
        logger.debug("Opening httpx stream: %s %s", request.method, request.url)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                async with client.stream(
                    request.method,
                    request.url,
                    headers=request.headers,
                    content=request.body,
                ) as response:
                    if not is_success(response.status_code):
                        logger.warning("Stream request failed with HTTP %d", response.status_code)
                        raise error_for_status(response.status_code)

                    async for data in response.aiter_bytes():
                        for chunk in decoder.feed(data):
                            yield chunk
                        if decoder.done:
                            logger.debug("Received [DONE], closing httpx stream")
                            return

                    for chunk in decoder.flush():
                        yield chunk
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e
