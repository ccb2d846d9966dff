"""Folds streamed chunks back into a complete assistant message."""

from __future__ import annotations

from deepseekkit.llm.types import (
    ChatCompletionChunk,
    ChatMessage,
    FunctionCall,
    MessageRole,
    ToolCall,
    Usage,
)


class ChunkAccumulator:
    """Collects the first choice of a streamed completion.

    Content and reasoning deltas are concatenated; tool call fragments are
    merged by their ``index``, with ``arguments`` appended piece by piece.
    """

    def __init__(self) -> None:
        self.content = ""
        self.reasoning_content = ""
        self.finish_reason: str | None = None
        self.usage: Usage | None = None
        self.model: str | None = None
        self.chunk_count = 0
        self._tool_calls: dict[int, dict] = {}

    def add(self, chunk: ChatCompletionChunk) -> None:
        self.chunk_count += 1
        self.model = chunk.model
        if chunk.usage is not None:
            self.usage = chunk.usage

        for choice in chunk.choices:
            if choice.index != 0:
                continue
            delta = choice.delta
            if delta.content:
                self.content += delta.content
            if delta.reasoning_content:
                self.reasoning_content += delta.reasoning_content

            for tc_delta in delta.tool_calls or []:
                tc = self._tool_calls.setdefault(
                    tc_delta.index, {"id": "", "name": "", "arguments": ""}
                )
                if tc_delta.id:
                    tc["id"] = tc_delta.id
                if tc_delta.function is not None:
                    if tc_delta.function.name:
                        tc["name"] = tc_delta.function.name
                    if tc_delta.function.arguments:
                        tc["arguments"] += tc_delta.function.arguments

            if choice.finish_reason:
                self.finish_reason = choice.finish_reason

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=tc["id"], function=FunctionCall(name=tc["name"], arguments=tc["arguments"]))
            for _, tc in sorted(self._tool_calls.items())
        ]

    def message(self) -> ChatMessage:
        """The assistant message to append to the conversation.

        Reasoning is left out: the API rejects ``reasoning_content`` in input
        messages.
        """
        return ChatMessage(
            role=MessageRole.ASSISTANT,
            content=self.content or None,
            tool_calls=self.tool_calls or None,
        )
