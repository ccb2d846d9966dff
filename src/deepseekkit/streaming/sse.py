"""Server-sent event framing and payload decoding for streamed chat completions.

The wire format is ``text/event-stream``: records separated by a blank line,
each record holding one or more lines. The line of interest starts with the
literal ``data: `` and carries either a chunk as JSON or the ``[DONE]``
sentinel::

    data: {"id": "...", "choices": [...]}

    data: [DONE]

Bytes arrive in arbitrary fragments from either transport, so framing works
on an append-only byte buffer and only decodes text once a record is whole.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import ValidationError

from deepseekkit.llm.types import ChatCompletionChunk

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"

_DELIMITER = b"\n\n"


class EventFrameSplitter:
    """Splits a chunked byte stream into blank-line delimited records."""

    def __init__(self) -> None:
        self._buffer = bytearray()
        # A fragment ending in "\r" keeps it here until the next one shows
        # whether "\n" follows.
        self._held_cr = False

    def feed(self, data: bytes) -> list[str]:
        """Append a fragment and return every record it completed, in order.

        Only the new bytes are normalised and searched, so feeding a record
        in many small fragments stays linear in its size.
        """
        if not data:
            return []
        if self._held_cr:
            data = b"\r" + data
            self._held_cr = False
        if data.endswith(b"\r"):
            data = data[:-1]
            self._held_cr = True
        if b"\r" in data:
            data = data.replace(b"\r\n", b"\n")

        # The delimiter may straddle the old tail and the new bytes.
        start = max(0, len(self._buffer) - len(_DELIMITER) + 1)
        self._buffer.extend(data)

        records: list[str] = []
        while True:
            end = self._buffer.find(_DELIMITER, start)
            if end < 0:
                break
            raw = bytes(self._buffer[:end])
            del self._buffer[: end + len(_DELIMITER)]
            records.append(raw.decode("utf-8", errors="replace"))
            start = 0
        return records

    def flush(self) -> list[str]:
        """Return the trailing partial record, if any, and empty the buffer."""
        raw = bytes(self._buffer)
        if self._held_cr:
            raw += b"\r"
        self._buffer.clear()
        self._held_cr = False
        if not raw.strip():
            return []
        return [raw.decode("utf-8", errors="replace")]


def extract_data(record: str) -> str | None:
    """Return the payload of the first ``data: `` line in a record."""
    for line in record.split("\n"):
        if line.startswith(DATA_PREFIX):
            return line[len(DATA_PREFIX):]
    return None


class EventStreamDecoder:
    """Turns raw transport bytes into chat completion chunks.

    One decoder belongs to exactly one stream. After the ``[DONE]`` sentinel
    is seen, ``done`` is set and further input is ignored. Payloads that fail
    to parse are skipped and counted in ``dropped``; ``on_malformed`` (if
    given) receives the payload text and the validation error.
    """

    def __init__(
        self,
        on_malformed: Callable[[str, Exception], None] | None = None,
    ) -> None:
        self._splitter = EventFrameSplitter()
        self._on_malformed = on_malformed
        self.done = False
        self.dropped = 0

    def feed(self, data: bytes) -> list[ChatCompletionChunk]:
        if self.done:
            return []
        return self._decode_records(self._splitter.feed(data))

    def flush(self) -> list[ChatCompletionChunk]:
        if self.done:
            return []
        return self._decode_records(self._splitter.flush())

    def _decode_records(self, records: list[str]) -> list[ChatCompletionChunk]:
        chunks: list[ChatCompletionChunk] = []
        for record in records:
            payload = extract_data(record)
            if payload is None:
                continue
            if payload.strip() == DONE_SENTINEL:
                self.done = True
                break
            chunk = self._parse(payload)
            if chunk is not None:
                chunks.append(chunk)
        return chunks

    def _parse(self, payload: str) -> ChatCompletionChunk | None:
        try:
            return ChatCompletionChunk.model_validate_json(payload)
        except ValidationError as e:
            self.dropped += 1
            logger.warning(
                "Dropping malformed stream payload (%d dropped so far): %s",
                self.dropped,
                payload[:200],
            )
            if self._on_malformed is not None:
                self._on_malformed(payload, e)
            return None
