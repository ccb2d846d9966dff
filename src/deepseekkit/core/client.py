"""The DeepSeek client: wires configuration, networking and the services together."""

from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Callable

import httpx
from dotenv import load_dotenv

from deepseekkit.core.config import Settings, get_project_root, load_settings
from deepseekkit.core.errors import InvalidAPIKeyError
from deepseekkit.core.networking import HTTPNetworking
from deepseekkit.core.request_builder import RequestBuilder
from deepseekkit.llm.balance_service import BalanceService
from deepseekkit.llm.base import BalanceServiceProtocol, ChatServiceProtocol, ModelServiceProtocol
from deepseekkit.llm.chat_service import ChatService
from deepseekkit.llm.model_service import ModelService
from deepseekkit.streaming.base import StreamTransport
from deepseekkit.streaming.factory import select_transport

logger = logging.getLogger(__name__)


class DeepSeekClient:
    """Entry point for the DeepSeek API.

    The streaming transport is picked once here, from ``settings.streaming``
    unless one is passed explicitly, and shared by every streamed request.
    ``http_transport`` replaces the httpx transport of the non-streaming
    client (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        settings: Settings | None = None,
        streaming_transport: StreamTransport | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
        on_malformed_chunk: Callable[[str, Exception], None] | None = None,
    ):
        self.settings = settings or Settings()
        self.api_key = api_key if api_key is not None else self.settings.api_key
        if not self.api_key:
            raise InvalidAPIKeyError("API key is empty")
        self.base_url = (base_url or self.settings.base_url).rstrip("/")

        self._request_builder = RequestBuilder(
            self.api_key,
            base_url=self.base_url,
            beta_url=self.settings.beta_url,
            balance_url=self.settings.balance_url,
        )
        self._networking = HTTPNetworking(
            timeout=self.settings.request_timeout,
            transport=http_transport,
        )
        self.transport = streaming_transport or select_transport(
            self.settings.streaming,
            connect_timeout=self.settings.request_timeout,
        )

        self.chat: ChatServiceProtocol = ChatService(
            self._networking,
            self._request_builder,
            self.transport,
            on_malformed_chunk=on_malformed_chunk,
            default_model=self.settings.default_model,
        )
        self.models: ModelServiceProtocol = ModelService(self._networking, self._request_builder)
        self.balance: BalanceServiceProtocol = BalanceService(self._networking, self._request_builder)
        logger.debug("DeepSeek client ready for %s (streaming via %s)", self.base_url, self.transport.name)

    @classmethod
    def from_settings(
        cls,
        config_path: Path | None = None,
        load_env: bool = True,
        **kwargs,
    ) -> DeepSeekClient:
        """Build a client from ``.env``, the YAML settings file and environment variables."""
        if load_env:
            load_dotenv(get_project_root() / ".env")
        return cls(settings=load_settings(config_path), **kwargs)

    async def aclose(self) -> None:
        await self._networking.aclose()

    async def __aenter__(self) -> DeepSeekClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
