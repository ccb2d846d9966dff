"""Service interfaces exposed by the DeepSeek client."""

from __future__ import annotations

from typing import Protocol

from deepseekkit.llm.types import (
    BalanceResponse,
    ChatCompletionRequest,
    ChatCompletionResponse,
    CompletionRequest,
    CompletionResponse,
    Model,
)
from deepseekkit.streaming.base import ChatCompletionStream


class ChatServiceProtocol(Protocol):
    """Chat completions, single-shot and streamed."""

    async def create_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse: ...

    def create_streaming_completion(self, request: ChatCompletionRequest) -> ChatCompletionStream: ...

    async def create_fim_completion(self, request: CompletionRequest) -> CompletionResponse: ...


class ModelServiceProtocol(Protocol):
    async def list_models(self) -> list[Model]: ...


class BalanceServiceProtocol(Protocol):
    async def get_balance(self) -> BalanceResponse: ...
