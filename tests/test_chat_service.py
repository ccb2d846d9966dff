"""Tests for the chat, model and balance services through the client."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest
from conftest import API_KEY, STANDARD_PAYLOADS, chunk_payload, event_stream_response, sse_body

from deepseekkit.core.client import DeepSeekClient
from deepseekkit.core.config import Settings, StreamingConfig
from deepseekkit.core.errors import DecodingError, InvalidAPIKeyError
from deepseekkit.llm.types import (
    ChatCompletionRequest,
    ChatMessage,
    CompletionRequest,
    DeepSeekModel,
)
from deepseekkit.streaming.httpx_transport import HTTPXStreamTransport

COMPLETION = {
    "id": "chatcmpl-9",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "deepseek-reasoner",
    "choices": [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "4", "reasoning_content": "2+2"},
            "finish_reason": "stop",
        }
    ],
    "usage": {
        "prompt_tokens": 10,
        "completion_tokens": 2,
        "total_tokens": 12,
        "prompt_cache_hit_tokens": 0,
        "prompt_cache_miss_tokens": 10,
    },
}


class Recorder:
    """MockTransport handler that records requests and routes by path."""

    def __init__(self, routes: dict[str, httpx.Response]):
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.routes[request.url.path]

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


def make_client(recorder: Recorder) -> DeepSeekClient:
    mock = httpx.MockTransport(recorder)
    return DeepSeekClient(
        api_key=API_KEY,
        base_url="https://api.test/v1",
        http_transport=mock,
        streaming_transport=HTTPXStreamTransport(transport=mock),
    )


def test_empty_api_key_rejected():
    with pytest.raises(InvalidAPIKeyError):
        DeepSeekClient(api_key="")


@pytest.mark.asyncio
async def test_create_completion_forces_stream_off():
    recorder = Recorder({"/v1/chat/completions": httpx.Response(200, json=COMPLETION)})
    request = ChatCompletionRequest(
        model=DeepSeekModel.REASONER,
        messages=[ChatMessage.system("Be terse"), ChatMessage.user("2+2?")],
        stream=True,
        stop=["\n\n"],
    )

    async with make_client(recorder) as client:
        response = await client.chat.create_completion(request)

    assert response.choices[0].message.content == "4"
    assert response.choices[0].message.reasoning_content == "2+2"
    assert response.usage.prompt_cache_miss_tokens == 10
    body = recorder.last_json
    assert body["stream"] is False
    assert body["model"] == "deepseek-reasoner"
    assert body["stop"] == ["\n\n"]
    assert "temperature" not in body
    assert recorder.requests[-1].headers["accept"] == "application/json"
    assert request.stream is True


@pytest.mark.asyncio
async def test_streaming_completion_forces_stream_on():
    recorder = Recorder({"/v1/chat/completions": event_stream_response(sse_body(*STANDARD_PAYLOADS))})
    request = ChatCompletionRequest(messages=[ChatMessage.user("Hi")], stream=False)

    async with make_client(recorder) as client:
        stream = client.chat.create_streaming_completion(request)
        assert recorder.requests == []
        chunks = [chunk async for chunk in stream]

    assert len(chunks) == len(STANDARD_PAYLOADS)
    assert recorder.last_json["stream"] is True
    assert recorder.requests[-1].headers["accept"] == "text/event-stream"
    assert request.stream is False
    assert stream.transport_name == "httpx"


@pytest.mark.asyncio
async def test_default_model_applies_when_request_leaves_it_unset():
    fim = {"id": "c", "created": 1, "model": "deepseek-chat", "choices": []}
    bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json=fim if request.url.path == "/beta/completions" else COMPLETION)

    mock = httpx.MockTransport(handler)
    client = DeepSeekClient(
        api_key=API_KEY,
        base_url="https://api.test/v1",
        settings=Settings(default_model="deepseek-reasoner"),
        http_transport=mock,
        streaming_transport=HTTPXStreamTransport(transport=mock),
    )

    async with client:
        await client.chat.create_completion(ChatCompletionRequest(messages=[ChatMessage.user("Hi")]))
        assert bodies[-1]["model"] == "deepseek-reasoner"

        await client.chat.create_completion(
            ChatCompletionRequest(model=DeepSeekModel.CHAT, messages=[ChatMessage.user("Hi")])
        )
        assert bodies[-1]["model"] == "deepseek-chat"

        await client.chat.create_fim_completion(CompletionRequest(prompt="x"))
        assert bodies[-1]["model"] == "deepseek-chat"


@pytest.mark.asyncio
async def test_each_stream_has_its_own_decoder():
    body = sse_body(chunk_payload(content="a"), "{broken")
    recorder = Recorder({"/v1/chat/completions": event_stream_response(body)})
    request = ChatCompletionRequest(messages=[ChatMessage.user("Hi")])

    async with make_client(recorder) as client:
        first = client.chat.create_streaming_completion(request)
        second = client.chat.create_streaming_completion(request)
        [chunk async for chunk in first]

    assert first.dropped_chunks == 1
    assert second.dropped_chunks == 0
    await second.aclose()


@pytest.mark.asyncio
async def test_malformed_chunk_callback():
    seen = []
    body = sse_body("{broken", chunk_payload(content="ok"))
    mock = httpx.MockTransport(lambda r: event_stream_response(body))
    client = DeepSeekClient(
        api_key=API_KEY,
        http_transport=mock,
        streaming_transport=HTTPXStreamTransport(transport=mock),
        on_malformed_chunk=lambda payload, err: seen.append(payload),
    )

    async with client:
        chunks = [c async for c in client.chat.create_streaming_completion(
            ChatCompletionRequest(messages=[ChatMessage.user("Hi")])
        )]

    assert len(chunks) == 1
    assert seen == ["{broken"]


@pytest.mark.asyncio
async def test_fim_completion_uses_beta_endpoint():
    fim = {
        "id": "cmpl-1",
        "object": "text_completion",
        "created": 1700000000,
        "model": "deepseek-chat",
        "choices": [{"text": "return a + b", "index": 0, "finish_reason": "stop"}],
    }
    recorder = Recorder({"/beta/completions": httpx.Response(200, json=fim)})

    async with make_client(recorder) as client:
        response = await client.chat.create_fim_completion(
            CompletionRequest(prompt="def add(a, b):\n    ", suffix="\n", max_tokens=16)
        )

    assert response.choices[0].text == "return a + b"
    assert str(recorder.requests[-1].url) == "https://api.deepseek.com/beta/completions"
    assert recorder.last_json == {
        "model": "deepseek-chat",
        "prompt": "def add(a, b):\n    ",
        "suffix": "\n",
        "max_tokens": 16,
        "stream": False,
    }


@pytest.mark.asyncio
async def test_list_models_envelope():
    models = {"object": "list", "data": [{"id": "deepseek-chat", "object": "model", "owned_by": "deepseek"}]}
    recorder = Recorder({"/v1/models": httpx.Response(200, json=models)})

    async with make_client(recorder) as client:
        result = await client.models.list_models()

    assert [m.id for m in result] == ["deepseek-chat"]
    assert recorder.requests[-1].method == "GET"


@pytest.mark.asyncio
async def test_list_models_bare_array():
    models = [
        {"id": "deepseek-chat", "owned_by": "deepseek"},
        {"id": "deepseek-reasoner", "owned_by": "deepseek"},
    ]
    recorder = Recorder({"/v1/models": httpx.Response(200, json=models)})

    async with make_client(recorder) as client:
        result = await client.models.list_models()

    assert [m.id for m in result] == ["deepseek-chat", "deepseek-reasoner"]


@pytest.mark.asyncio
async def test_list_models_undecodable():
    recorder = Recorder({"/v1/models": httpx.Response(200, json={"unexpected": True})})

    async with make_client(recorder) as client:
        with pytest.raises(DecodingError):
            await client.models.list_models()


@pytest.mark.asyncio
async def test_get_balance():
    balance = {
        "is_available": True,
        "balance_infos": [
            {
                "currency": "CNY",
                "total_balance": "110.00",
                "granted_balance": "10.00",
                "topped_up_balance": "100.00",
            }
        ],
    }
    recorder = Recorder({"/user/balance": httpx.Response(200, json=balance)})

    async with make_client(recorder) as client:
        result = await client.balance.get_balance()

    assert result.is_available
    assert result.balances[0].total_balance == "110.00"
    assert recorder.requests[-1].headers["authorization"] == f"Bearer {API_KEY}"


@pytest.mark.asyncio
async def test_from_settings_reads_yaml(tmp_path):
    config = tmp_path / "settings.yaml"
    config.write_text("api_key: sk-from-yaml\nbase_url: https://proxy.test/v1/\n")

    client = DeepSeekClient.from_settings(
        config,
        load_env=False,
        http_transport=httpx.MockTransport(lambda r: httpx.Response(200)),
    )

    assert client.api_key == "sk-from-yaml"
    assert client.base_url == "https://proxy.test/v1"
    assert client.transport.name == "httpx"
    await client.aclose()


@pytest.mark.asyncio
async def test_streaming_settings_select_the_transport():
    settings = Settings(api_key=API_KEY, streaming=StreamingConfig(transport="curl", read_timeout=4.0))
    with patch("deepseekkit.streaming.factory.shutil.which", return_value="/usr/bin/curl"):
        client = DeepSeekClient(settings=settings)

    assert client.transport.name == "curl"
    assert client.chat.transport is client.transport
    await client.aclose()
