"""Request, response and streaming chunk models for the DeepSeek API."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from deepseekkit.llm.tools import Tool, ToolChoice


class DeepSeekModel(str, Enum):
    """Model identifiers served by the API."""
    CHAT = "deepseek-chat"
    REASONER = "deepseek-reasoner"


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class FinishReason(str, Enum):
    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    INSUFFICIENT_SYSTEM_RESOURCE = "insufficient_system_resource"


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class FunctionCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    arguments: str  # JSON string


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    type: str = "function"
    function: FunctionCall


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str  # "system", "user", "assistant", "tool"
    content: str | None = None
    name: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None
    reasoning_content: str | None = None
    prefix: bool | None = None  # beta chat prefix completion

    @field_validator("role", mode="before")
    @classmethod
    def _role_value(cls, value: Any) -> Any:
        return _enum_value(value)

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: list[ToolCall] | None = None) -> ChatMessage:
        return cls(role=MessageRole.ASSISTANT, content=content, tool_calls=tool_calls)

    @classmethod
    def tool(cls, content: str, tool_call_id: str, name: str | None = None) -> ChatMessage:
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id, name=name)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ResponseFormat(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["text", "json_object"] = "text"


class StreamOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    include_usage: bool = True


# A single stop string is tried before a list of them.
StringOrArray = Union[str, list[str]]


class ChatCompletionRequest(BaseModel):
    """Parameters for ``/chat/completions``.

    The reasoner model ignores ``temperature``, ``top_p``,
    ``frequency_penalty`` and ``presence_penalty``. ``stream`` is always
    overwritten by the chat service to match the entry point used.
    """

    model_config = ConfigDict(frozen=True)

    model: str = DeepSeekModel.CHAT.value
    messages: list[ChatMessage]
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stream: bool | None = None
    stream_options: StreamOptions | None = None
    stop: StringOrArray | None = Field(default=None, union_mode="left_to_right")
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    response_format: ResponseFormat | None = None
    tools: list[Tool] | None = None
    tool_choice: ToolChoice | None = None
    logprobs: bool | None = None
    top_logprobs: int | None = None

    @field_validator("model", mode="before")
    @classmethod
    def _model_value(cls, value: Any) -> Any:
        return _enum_value(value)

    def with_stream(self, stream: bool) -> ChatCompletionRequest:
        """Return a copy with ``stream`` set; the original is left untouched."""
        return self.model_copy(update={"stream": stream})

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class CompletionRequest(BaseModel):
    """Fill-in-the-middle completion (beta endpoint)."""

    model_config = ConfigDict(frozen=True)

    model: str = DeepSeekModel.CHAT.value
    prompt: str
    suffix: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
    stream: bool | None = None

    @field_validator("model", mode="before")
    @classmethod
    def _model_value(cls, value: Any) -> Any:
        return _enum_value(value)

    def with_stream(self, stream: bool) -> CompletionRequest:
        return self.model_copy(update={"stream": stream})

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class CompletionTokensDetails(BaseModel):
    reasoning_tokens: int | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    prompt_cache_hit_tokens: int | None = None
    prompt_cache_miss_tokens: int | None = None
    completion_tokens_details: CompletionTokensDetails | None = None


class TopLogProb(BaseModel):
    token: str
    logprob: float
    bytes: list[int] | None = None


class TokenLogProb(BaseModel):
    token: str
    logprob: float
    bytes: list[int] | None = None
    top_logprobs: list[TopLogProb] = []


class LogProbs(BaseModel):
    content: list[TokenLogProb] | None = None


class ResponseMessage(BaseModel):
    role: str = MessageRole.ASSISTANT.value
    content: str | None = None
    reasoning_content: str | None = None
    tool_calls: list[ToolCall] | None = None


class Choice(BaseModel):
    index: int
    message: ResponseMessage
    logprobs: LogProbs | None = None
    finish_reason: str | None = None


class ChatCompletionResponse(BaseModel):
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    system_fingerprint: str | None = None
    choices: list[Choice]
    usage: Usage | None = None


class CompletionChoice(BaseModel):
    text: str
    index: int
    logprobs: Any | None = None
    finish_reason: str | None = None


class CompletionResponse(BaseModel):
    id: str
    object: str = "text_completion"
    created: int
    model: str
    choices: list[CompletionChoice]
    usage: Usage | None = None


class Model(BaseModel):
    id: str
    object: str = "model"
    created: int | None = None
    owned_by: str


class ModelsResponse(BaseModel):
    object: str = "list"
    data: list[Model]


class Balance(BaseModel):
    currency: str
    total_balance: str
    granted_balance: str
    topped_up_balance: str


class BalanceResponse(BaseModel):
    is_available: bool
    balance_infos: list[Balance]

    @property
    def balances(self) -> list[Balance]:
        return self.balance_infos


class APIErrorBody(BaseModel):
    message: str
    type: str | None = None
    code: str | int | None = None
    param: str | None = None


class ErrorResponse(BaseModel):
    error: APIErrorBody


# ---------------------------------------------------------------------------
# Streaming chunks
# ---------------------------------------------------------------------------


class FunctionCallDelta(BaseModel):
    name: str | None = None
    arguments: str | None = None


class ToolCallDelta(BaseModel):
    index: int
    id: str | None = None
    type: str | None = None
    function: FunctionCallDelta | None = None


class MessageDelta(BaseModel):
    role: str | None = None
    content: str | None = None
    reasoning_content: str | None = None
    tool_calls: list[ToolCallDelta] | None = None


class ChunkChoice(BaseModel):
    index: int
    delta: MessageDelta
    logprobs: LogProbs | None = None
    finish_reason: str | None = None


class ChatCompletionChunk(BaseModel):
    """One increment of a streamed chat completion."""

    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    system_fingerprint: str | None = None
    choices: list[ChunkChoice] = []
    usage: Usage | None = None
