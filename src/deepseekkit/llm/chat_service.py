"""Chat completion service: the single entry point for streamed and non-streamed chat."""

from __future__ import annotations

import logging
from typing import Callable

from deepseekkit.core.networking import HTTPNetworking
from deepseekkit.core.request_builder import RequestBuilder
from deepseekkit.llm.types import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    CompletionRequest,
    CompletionResponse,
)
from deepseekkit.streaming.base import ChatCompletionStream, StreamTransport
from deepseekkit.streaming.sse import EventStreamDecoder

logger = logging.getLogger(__name__)


class ChatService:
    """Chat completions over a fixed networking layer and streaming transport.

    The transport is chosen by the client once; every streamed request goes
    through it. ``stream`` on the request is always overwritten to match the
    method called. A request that does not set ``model`` itself is sent with
    ``default_model`` when one is given.
    """

    def __init__(
        self,
        networking: HTTPNetworking,
        request_builder: RequestBuilder,
        transport: StreamTransport,
        on_malformed_chunk: Callable[[str, Exception], None] | None = None,
        default_model: str | None = None,
    ):
        self._networking = networking
        self._request_builder = request_builder
        self._transport = transport
        self._on_malformed_chunk = on_malformed_chunk
        self._default_model = default_model

    @property
    def transport(self) -> StreamTransport:
        return self._transport

    def _with_default_model(self, request: ChatCompletionRequest) -> ChatCompletionRequest:
        if self._default_model is None or "model" in request.model_fields_set:
            return request
        return request.model_copy(update={"model": self._default_model})

    async def create_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """Non-streaming chat completion."""
        prepared = self._request_builder.chat_completion(self._with_default_model(request).with_stream(False))
        return await self._networking.perform(prepared, ChatCompletionResponse)

    def create_streaming_completion(self, request: ChatCompletionRequest) -> ChatCompletionStream:
        """Streaming chat completion.

        Nothing is sent until the returned stream is first iterated. Each call
        gets its own decoder and its own connection or curl process.
        """
        request = self._with_default_model(request)
        prepared = self._request_builder.chat_completion(request.with_stream(True), stream=True)
        decoder = EventStreamDecoder(on_malformed=self._on_malformed_chunk)
        logger.debug("Streaming %s via %s", request.model, self._transport.name)
        return ChatCompletionStream(
            self._transport.open(prepared, decoder),
            decoder,
            transport_name=self._transport.name,
        )

    async def create_fim_completion(self, request: CompletionRequest) -> CompletionResponse:
        """Fill-in-the-middle completion against the beta endpoint."""
        prepared = self._request_builder.fim_completion(request.with_stream(False))
        return await self._networking.perform(prepared, CompletionResponse)
