"""Async Python client for the DeepSeek API with streamed chat completions."""

from deepseekkit.core.client import DeepSeekClient
from deepseekkit.core.config import Settings, StreamingConfig, load_settings
from deepseekkit.core.errors import (
    APIError,
    DecodingError,
    DeepSeekError,
    EncodingError,
    HTTPStatusError,
    InsufficientBalanceError,
    InvalidAPIKeyError,
    InvalidRequestError,
    NetworkError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
    StreamingError,
    TransportLaunchError,
)
from deepseekkit.llm.tools import FunctionBuilder, FunctionDefinition, NamedToolChoice, Tool
from deepseekkit.llm.types import (
    ChatCompletionChunk,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    CompletionRequest,
    CompletionResponse,
    DeepSeekModel,
    ResponseFormat,
    StreamOptions,
)
from deepseekkit.streaming.accumulator import ChunkAccumulator
from deepseekkit.streaming.base import ChatCompletionStream

__all__ = [
    "APIError",
    "ChatCompletionChunk",
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatCompletionStream",
    "ChatMessage",
    "ChunkAccumulator",
    "CompletionRequest",
    "CompletionResponse",
    "DecodingError",
    "DeepSeekClient",
    "DeepSeekError",
    "DeepSeekModel",
    "EncodingError",
    "FunctionBuilder",
    "FunctionDefinition",
    "HTTPStatusError",
    "InsufficientBalanceError",
    "InvalidAPIKeyError",
    "InvalidRequestError",
    "NamedToolChoice",
    "NetworkError",
    "RateLimitError",
    "RequestTimeoutError",
    "ResponseFormat",
    "ServiceUnavailableError",
    "Settings",
    "StreamOptions",
    "StreamingConfig",
    "StreamingError",
    "Tool",
    "TransportLaunchError",
    "load_settings",
]
