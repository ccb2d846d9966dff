"""Builds HTTP requests for the DeepSeek API endpoints."""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from deepseekkit.core.errors import EncodingError
from deepseekkit.llm.types import ChatCompletionRequest, CompletionRequest

JSON_CONTENT_TYPE = "application/json"
EVENT_STREAM_CONTENT_TYPE = "text/event-stream"


@dataclass(frozen=True)
class PreparedRequest:
    """A fully built request, independent of the client that sends it."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None

    def redacted_headers(self) -> dict[str, str]:
        """Headers safe for logging."""
        return {
            key: ("Bearer ***" if key.lower() == "authorization" else value)
            for key, value in self.headers.items()
        }


class RequestBuilder:
    """Creates ``PreparedRequest`` objects carrying the bearer credential."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.deepseek.com/v1",
        beta_url: str = "https://api.deepseek.com/beta",
        balance_url: str = "https://api.deepseek.com/user/balance",
    ):
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._beta_url = beta_url.rstrip("/")
        self._balance_url = balance_url

    @property
    def base_url(self) -> str:
        return self._base_url

    def chat_completion(self, payload: ChatCompletionRequest, stream: bool = False) -> PreparedRequest:
        accept = EVENT_STREAM_CONTENT_TYPE if stream else JSON_CONTENT_TYPE
        return self._post(f"{self._base_url}/chat/completions", payload, accept)

    def fim_completion(self, payload: CompletionRequest) -> PreparedRequest:
        return self._post(f"{self._beta_url}/completions", payload, JSON_CONTENT_TYPE)

    def list_models(self) -> PreparedRequest:
        return self._get(f"{self._base_url}/models")

    def get_balance(self) -> PreparedRequest:
        # Balance lives at the API root, outside the versioned prefix.
        return self._get(self._balance_url)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def _get(self, url: str) -> PreparedRequest:
        headers = self._auth_headers()
        headers["Accept"] = JSON_CONTENT_TYPE
        return PreparedRequest(method="GET", url=url, headers=headers)

    def _post(self, url: str, payload: ChatCompletionRequest | CompletionRequest, accept: str) -> PreparedRequest:
        headers = self._auth_headers()
        headers["Content-Type"] = JSON_CONTENT_TYPE
        headers["Accept"] = accept
        try:
            body = json.dumps(payload.to_payload(), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Failed to encode request: {e}") from e
        return PreparedRequest(method="POST", url=url, headers=headers, body=body)
