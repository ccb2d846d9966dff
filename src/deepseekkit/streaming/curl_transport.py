"""Subprocess streaming transport that delegates the HTTP exchange to curl.

curl runs with ``--no-buffer`` so event bytes reach its stdout as soon as
they arrive. The bearer credential and the request body are written to
curl's stdin as a ``--config -`` file, so neither shows up in the process
argument list visible to other users. ``--write-out`` reports the HTTP status
on stderr after the transfer, which lets a failed request surface the same
typed status error as the httpx transport.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import AsyncGenerator

from deepseekkit.core.errors import (
    RequestTimeoutError,
    StreamingError,
    TransportLaunchError,
    error_for_status,
    is_success,
)
from deepseekkit.core.request_builder import PreparedRequest
from deepseekkit.llm.types import ChatCompletionChunk
from deepseekkit.streaming.sse import EventStreamDecoder

logger = logging.getLogger(__name__)

STATUS_MARKER = "deepseekkit-http-status: "
_STATUS_RE = re.compile(rf"^{re.escape(STATUS_MARKER)}(\d{{3}})\s*$", re.MULTILINE)

READ_SIZE = 65536


def quote_config_value(value: str) -> str:
    """Quote a value for a curl config file."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    escaped = escaped.replace("\n", "\\n").replace("\r", "\\r").replace("\t", "\\t")
    return f'"{escaped}"'


def parse_http_status(stderr: str) -> int | None:
    """Extract the status written by ``--write-out``; ``None`` if no response arrived."""
    matches = _STATUS_RE.findall(stderr)
    if not matches:
        return None
    status = int(matches[-1])
    return status or None


def strip_status_marker(stderr: str) -> str:
    return _STATUS_RE.sub("", stderr).strip()


class CurlStreamTransport:
    """Streams through a curl child process, one process per stream."""

    name = "curl"

    def __init__(
        self,
        curl_path: str = "curl",
        read_timeout: float | None = None,
        connect_timeout: float = 30.0,
        terminate_timeout: float = 2.0,
    ):
        self._curl_path = curl_path
        self._read_timeout = read_timeout
        self._connect_timeout = connect_timeout
        self._terminate_timeout = terminate_timeout

    def build_command(self, request: PreparedRequest) -> list[str]:
        return [
            self._curl_path,
            "--silent",
            "--show-error",
            "--no-buffer",
            "--fail",
            "--request",
            request.method,
            "--connect-timeout",
            str(self._connect_timeout),
            "--write-out",
            f"%{{stderr}}\\n{STATUS_MARKER}%{{http_code}}\\n",
            "--config",
            "-",
            "--url",
            request.url,
        ]

    def build_config(self, request: PreparedRequest) -> bytes:
        lines = [
            f"header = {quote_config_value(f'{key}: {value}')}"
            for key, value in request.headers.items()
        ]
        if request.body is not None:
            lines.append(f"data-raw = {quote_config_value(request.body.decode('utf-8'))}")
        return ("\n".join(lines) + "\n").encode("utf-8")

    async def open(
        self,
        request: PreparedRequest,
        decoder: EventStreamDecoder,
    ) -> AsyncGenerator[ChatCompletionChunk, None]:
        command = self.build_command(request)
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransportLaunchError(f"Could not start {self._curl_path!r}: {e}") from e

        logger.debug("Started curl (pid=%d) for %s %s", process.pid, request.method, request.url)
        stderr_task = asyncio.ensure_future(process.stderr.read())
        try:
            await self._send_config(process, self.build_config(request))

            while True:
                data = await self._read(process)
                if not data:
                    break
                for chunk in decoder.feed(data):
                    yield chunk
                if decoder.done:
                    logger.debug("Received [DONE], stopping curl (pid=%d)", process.pid)
                    return

            for chunk in decoder.flush():
                yield chunk
            if decoder.done:
                return

            returncode = await process.wait()
            stderr = (await stderr_task).decode("utf-8", errors="replace")
            self._check_exit(returncode, stderr)
        finally:
            await self._reap(process, stderr_task)

    async def _send_config(self, process: asyncio.subprocess.Process, config: bytes) -> None:
        try:
            process.stdin.write(config)
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            # curl already exited; its exit status explains why.
            logger.debug("curl (pid=%d) closed stdin early", process.pid)
        finally:
            process.stdin.close()

    async def _read(self, process: asyncio.subprocess.Process) -> bytes:
        if self._read_timeout is None:
            return await process.stdout.read(READ_SIZE)
        try:
            return await asyncio.wait_for(process.stdout.read(READ_SIZE), self._read_timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(
                f"No data received for {self._read_timeout} seconds"
            ) from None

    def _check_exit(self, returncode: int, stderr: str) -> None:
        status = parse_http_status(stderr)
        if status is not None and not is_success(status):
            logger.warning("Stream request failed with HTTP %d (curl exit %d)", status, returncode)
            raise error_for_status(status)
        if returncode != 0:
            message = strip_status_marker(stderr)
            logger.warning("curl exited with status %d: %s", returncode, message)
            raise StreamingError(
                f"curl process failed with status: {returncode}",
                exit_status=returncode,
                stderr=message,
            )

    async def _reap(self, process: asyncio.subprocess.Process, stderr_task: asyncio.Future) -> None:
        """Terminate curl if it is still running, then collect it and its pipes."""
        if process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(process.wait(), self._terminate_timeout)
            except asyncio.TimeoutError:
                logger.warning("curl (pid=%d) ignored SIGTERM, killing", process.pid)
                process.kill()
                await process.wait()

        # Drain what is left so the pipe reaches EOF and its transport closes.
        try:
            await asyncio.wait_for(process.stdout.read(), self._terminate_timeout)
        except asyncio.TimeoutError:
            logger.debug("curl (pid=%d) stdout did not reach EOF", process.pid)
        if not stderr_task.done():
            stderr_task.cancel()
        await asyncio.gather(stderr_task, return_exceptions=True)
        logger.debug("curl (pid=%d) exited with status %s", process.pid, process.returncode)
