"""Test fixtures for deepseekkit."""

from __future__ import annotations

import json
import os
import stat
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx
import pytest

from deepseekkit.core.config import Settings
from deepseekkit.core.request_builder import PreparedRequest, RequestBuilder
from deepseekkit.llm.types import ChatCompletionRequest, ChatMessage

API_KEY = "sk-test-secret"


def chunk_payload(
    content: str | None = None,
    reasoning: str | None = None,
    role: str | None = None,
    finish_reason: str | None = None,
    tool_calls: list[dict] | None = None,
    usage: dict | None = None,
    with_choice: bool = True,
    chunk_id: str = "chatcmpl-1",
) -> dict[str, Any]:
    """Build the JSON object of one streamed chunk."""
    delta: dict[str, Any] = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls

    payload: dict[str, Any] = {
        "id": chunk_id,
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "deepseek-chat",
        "choices": [],
    }
    if with_choice:
        payload["choices"] = [{"index": 0, "delta": delta, "finish_reason": finish_reason}]
    if usage is not None:
        payload["usage"] = usage
    return payload


def sse_record(payload: dict | str) -> bytes:
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode("utf-8")


def sse_body(*payloads: dict | str, done: bool = True) -> bytes:
    body = b"".join(sse_record(p) for p in payloads)
    if done:
        body += b"data: [DONE]\n\n"
    return body


USAGE = {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8}

STANDARD_PAYLOADS = [
    chunk_payload(role="assistant", content=""),
    chunk_payload(content="Hello"),
    chunk_payload(content=", wörld 你好"),
    chunk_payload(finish_reason="stop"),
    chunk_payload(with_choice=False, usage=USAGE),
]


def event_stream_response(body: bytes, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        headers={"Content-Type": "text/event-stream"},
        content=body,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the developer's DEEPSEEK_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("DEEPSEEK_"):
            monkeypatch.delenv(key)


@pytest.fixture
def settings():
    return Settings(api_key=API_KEY)


@pytest.fixture
def request_builder():
    return RequestBuilder(API_KEY, base_url="https://api.test/v1")


@pytest.fixture
def chat_request():
    return ChatCompletionRequest(messages=[ChatMessage.user("Hi")])


@pytest.fixture
def stream_request(request_builder, chat_request) -> PreparedRequest:
    return request_builder.chat_completion(chat_request.with_stream(True), stream=True)


@dataclass
class FakeCurl:
    """Paths written by one fake curl script run."""

    path: Path
    args_file: Path
    config_file: Path
    pid_file: Path

    @property
    def argv(self) -> list[str]:
        return self.args_file.read_text().split("\n")

    @property
    def config(self) -> str:
        return self.config_file.read_text()

    @property
    def pid(self) -> int:
        return int(self.pid_file.read_text())


_FAKE_CURL_TEMPLATE = """\
#!{python}
import os
import sys
import time

with open({pid_file!r}, "w") as f:
    f.write(str(os.getpid()))
with open({args_file!r}, "w") as f:
    f.write("\\n".join(sys.argv))
config = sys.stdin.buffer.read()
with open({config_file!r}, "wb") as f:
    f.write(config)

for piece in {pieces!r}:
    sys.stdout.buffer.write(piece)
    sys.stdout.buffer.flush()
    time.sleep({delay!r})

if {hang!r}:
    time.sleep(60)

sys.stderr.write({stderr!r} + "\\ndeepseekkit-http-status: {status:03d}\\n")
sys.stderr.flush()
sys.exit({exit_code!r})
"""


@pytest.fixture
def fake_curl(tmp_path):
    """Factory writing an executable stand-in for curl.

    The script records its argv, the config read from stdin and its pid,
    writes ``body`` to stdout in ``pieces`` fragments, then reports ``status``
    the way ``--write-out`` does and exits with ``exit_code``.
    """
    if sys.platform == "win32":
        pytest.skip("fake curl script needs a POSIX shebang")

    counter = {"n": 0}

    def make(
        body: bytes = b"",
        status: int = 200,
        exit_code: int = 0,
        stderr: str = "",
        pieces: int = 1,
        delay: float = 0.0,
        hang: bool = False,
    ) -> FakeCurl:
        counter["n"] += 1
        base = tmp_path / f"curl{counter['n']}"
        fake = FakeCurl(
            path=base.with_suffix(".py"),
            args_file=base.with_suffix(".args"),
            config_file=base.with_suffix(".config"),
            pid_file=base.with_suffix(".pid"),
        )
        size = max(1, -(-len(body) // pieces)) if body else 1
        split = [body[i:i + size] for i in range(0, len(body), size)]
        fake.path.write_text(textwrap.dedent(_FAKE_CURL_TEMPLATE).format(
            python=sys.executable,
            pid_file=str(fake.pid_file),
            args_file=str(fake.args_file),
            config_file=str(fake.config_file),
            pieces=split,
            delay=delay,
            hang=hang,
            stderr=stderr,
            status=status,
            exit_code=exit_code,
        ))
        fake.path.chmod(fake.path.stat().st_mode | stat.S_IXUSR)
        return fake

    return make


def process_exited(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    return False


class CorruptGzipStream(httpx.AsyncByteStream):
    """A body declared as gzip that does not decompress."""

    async def __aiter__(self):
        yield b"\x1f\x8b\x08garbage"


def corrupt_gzip_response() -> httpx.Response:
    return httpx.Response(200, headers={"Content-Encoding": "gzip"}, stream=CorruptGzipStream())
