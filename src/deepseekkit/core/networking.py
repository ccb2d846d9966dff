"""Request/response networking for the non-streaming endpoints."""

from __future__ import annotations

import logging
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError

from deepseekkit.core.errors import (
    APIError,
    DecodingError,
    HTTPStatusError,
    NetworkError,
    RequestTimeoutError,
    error_for_status,
    is_success,
)
from deepseekkit.core.request_builder import PreparedRequest
from deepseekkit.llm.types import ErrorResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Statuses that map to a dedicated error regardless of the body.
_TYPED_STATUSES = frozenset({401, 402, 429, 503})


def parse_error_envelope(body: bytes, status_code: int | None = None) -> APIError | None:
    """Return an ``APIError`` if ``body`` is the service's ``{"error": {...}}`` envelope."""
    try:
        envelope = ErrorResponse.model_validate_json(body)
    except ValidationError:
        return None
    error = envelope.error
    return APIError(
        error.message,
        type=error.type,
        code=error.code,
        param=error.param,
        status_code=status_code,
    )


class HTTPNetworking:
    """Sends prepared requests over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout: float = 60.0,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def perform(self, request: PreparedRequest, response_type: Any) -> Any:
        """Send ``request`` and validate the body as ``response_type``."""
        data = await self.perform_raw(request)
        try:
            return TypeAdapter(response_type).validate_json(data)
        except ValidationError as e:
            api_error = parse_error_envelope(data)
            if api_error is not None:
                raise api_error from e
            logger.debug("Response body that failed to decode: %s", data[:1000])
            raise DecodingError(f"Failed to decode response: {e}", body=data) from e

    async def perform_raw(self, request: PreparedRequest) -> bytes:
        logger.debug("%s %s headers=%s", request.method, request.url, request.redacted_headers())
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

        status = response.status_code
        if is_success(status):
            if not response.content:
                raise APIError(
                    "This endpoint may not be available yet",
                    type="endpoint_not_available",
                    status_code=status,
                )
            return response.content

        logger.warning("%s %s failed with HTTP %d", request.method, request.url, status)
        if status in _TYPED_STATUSES:
            raise error_for_status(status)
        api_error = parse_error_envelope(response.content, status_code=status)
        if api_error is not None:
            raise api_error
        raise HTTPStatusError(status)
