"""Chooses the streaming transport once, when the client is built."""

from __future__ import annotations

import logging
import shutil

from deepseekkit.core.config import StreamingConfig
from deepseekkit.core.errors import InvalidRequestError
from deepseekkit.streaming.base import StreamTransport
from deepseekkit.streaming.curl_transport import CurlStreamTransport
from deepseekkit.streaming.httpx_transport import HTTPXStreamTransport

logger = logging.getLogger(__name__)


def select_transport(config: StreamingConfig | None = None, connect_timeout: float = 30.0) -> StreamTransport:
    """Build the transport named by ``config.transport``.

    ``auto`` resolves to the in-process httpx reader, which streams on every
    platform CPython's asyncio supports. ``curl`` routes streams through the
    system curl binary instead (useful where curl carries proxy or TLS setup
    the Python process lacks).
    """
    config = config or StreamingConfig()
    kind = config.transport

    if kind in ("auto", "httpx"):
        transport: StreamTransport = HTTPXStreamTransport(
            read_timeout=config.read_timeout,
            connect_timeout=connect_timeout,
        )
    elif kind == "curl":
        if shutil.which(config.curl_path) is None:
            # Not fatal here: the launch error surfaces on the first stream.
            logger.warning("curl transport selected but %r was not found on PATH", config.curl_path)
        transport = CurlStreamTransport(
            curl_path=config.curl_path,
            read_timeout=config.read_timeout,
            connect_timeout=connect_timeout,
            terminate_timeout=config.terminate_timeout,
        )
    else:
        raise InvalidRequestError(f"Unknown streaming transport: {kind!r}")

    logger.info("Using %s streaming transport", transport.name)
    return transport
