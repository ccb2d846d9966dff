"""Account balance lookup."""

from __future__ import annotations

from deepseekkit.core.networking import HTTPNetworking
from deepseekkit.core.request_builder import RequestBuilder
from deepseekkit.llm.types import BalanceResponse


class BalanceService:
    def __init__(self, networking: HTTPNetworking, request_builder: RequestBuilder):
        self._networking = networking
        self._request_builder = request_builder

    async def get_balance(self) -> BalanceResponse:
        return await self._networking.perform(self._request_builder.get_balance(), BalanceResponse)
