"""Model listing."""

from __future__ import annotations

import logging

from pydantic import TypeAdapter, ValidationError

from deepseekkit.core.errors import DecodingError
from deepseekkit.core.networking import HTTPNetworking, parse_error_envelope
from deepseekkit.core.request_builder import RequestBuilder
from deepseekkit.llm.types import Model, ModelsResponse

logger = logging.getLogger(__name__)

_model_list = TypeAdapter(list[Model])


class ModelService:
    def __init__(self, networking: HTTPNetworking, request_builder: RequestBuilder):
        self._networking = networking
        self._request_builder = request_builder

    async def list_models(self) -> list[Model]:
        """List available models.

        Accepts the usual ``{"object": "list", "data": [...]}`` envelope and,
        from servers that omit it, a bare array.
        """
        data = await self._networking.perform_raw(self._request_builder.list_models())
        try:
            return ModelsResponse.model_validate_json(data).data
        except ValidationError as envelope_error:
            logger.debug("Models response is not an envelope, trying a bare list")
            try:
                return _model_list.validate_json(data)
            except ValidationError:
                api_error = parse_error_envelope(data)
                if api_error is not None:
                    raise api_error from envelope_error
                raise DecodingError(
                    f"Failed to decode response: {envelope_error}", body=data
                ) from envelope_error
