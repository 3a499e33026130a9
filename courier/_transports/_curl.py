from __future__ import annotations

import logging
import shutil
import subprocess
import typing as tp
from urllib.parse import urljoin

import anyio

from .._exceptions import ConnectError, CourierError, EmptyResponseError, RequestTimeout, TransportUnavailable
from .._headers import Headers
from .._models import ClientConfig, Request, Response
from ._base import BaseTransport, Emit

logger = logging.getLogger("courier.transports")

__all__ = ("CurlTransport", "CurlOutputParser")

HEADERS_ENCODING = "iso-8859-1"

CURL_TIMEOUT = 28
CURL_EMPTY_REPLY = 52


class CurlOutputParser:
    """
    Incremental parser for the output of ``curl --include``.

    Output bytes are appended to a single buffer and a cursor marks how far
    they have been consumed, so every byte is examined once. Header blocks
    of interim responses (``1xx``), proxy tunnels and redirects that curl
    followed are skipped; the last block describes the response and
    everything after it is body.
    """

    def __init__(self, url: str) -> None:
        self.url = url
        self.status_code: tp.Optional[int] = None
        self.reason_phrase = ""
        self.http_version: tp.Optional[str] = None
        self.headers = Headers()
        self._buffer = bytearray()
        self._cursor = 0
        self._scan_from = 0
        self._body_start: tp.Optional[int] = None
        self._expect_next_block = False
        self._partial: tp.Optional[Response] = None

    @property
    def headers_complete(self) -> bool:
        return self._body_start is not None

    def feed(self, data: bytes) -> bytes:
        """Append output and return the body bytes that became available."""
        self._buffer += data
        return self._advance(final=False)

    def close(self) -> bytes:
        """Signal the end of the output and return the remaining body bytes."""
        return self._advance(final=True)

    def partial_response(self) -> Response:
        if self._partial is None:
            self._partial = Response(
                status_code=self.status_code,
                reason_phrase=self.reason_phrase,
                headers=self.headers,
                http_version=self.http_version,
                url=self.url,
            )
        return self._partial

    def to_response(self) -> Response:
        response = self.partial_response()
        response.content = bytes(self._buffer[self._body_start :]) if self._body_start is not None else b""
        return response

    def _advance(self, final: bool) -> bytes:
        if self._body_start is None:
            self._parse_header_blocks(final)
            if self._body_start is None:
                return b""
        chunk = bytes(self._buffer[self._cursor :])
        self._cursor = len(self._buffer)
        return chunk

    def _parse_header_blocks(self, final: bool) -> None:
        while self._body_start is None:
            if self._expect_next_block:
                pending = bytes(self._buffer[self._cursor : self._cursor + 5])
                if len(pending) < 5 and not final:
                    return
                if pending != b"HTTP/":
                    self._body_start = self._cursor
                    return
                self._expect_next_block = False

            end = self._buffer.find(b"\r\n\r\n", max(self._cursor, self._scan_from))
            if end == -1:
                # The separator may straddle two reads.
                self._scan_from = max(self._cursor, len(self._buffer) - 3)
                if final and self.status_code is not None:
                    self._body_start = len(self._buffer)
                return

            block = bytes(self._buffer[self._cursor : end]).decode(HEADERS_ENCODING)
            self._cursor = self._scan_from = end + 4
            self._read_block(block)
            if self._is_intermediate():
                self._expect_next_block = True
            else:
                self._body_start = self._cursor

    def _read_block(self, block: str) -> None:
        status_line, *lines = block.split("\r\n")
        version, _, rest = status_line.partition(" ")
        code, _, reason = rest.partition(" ")
        self.http_version = version[len("HTTP/") :] if version.startswith("HTTP/") else version
        self.status_code = int(code)
        self.reason_phrase = reason.strip()
        self.headers = Headers()
        for line in lines:
            name, sep, value = line.partition(":")
            if sep:
                self.headers.add(name.strip(), value.strip())

    def _is_intermediate(self) -> bool:
        assert self.status_code is not None
        if 100 <= self.status_code < 200:
            return True
        if self.status_code == 200 and self.reason_phrase.lower() == "connection established":
            return True
        if 300 <= self.status_code < 400 and "location" in self.headers:
            self.url = urljoin(self.url, self.headers["location"])
            return True
        return False


class CurlTransport(BaseTransport):
    """
    Out-of-process transport running the ``curl`` executable.

    The request body is written to curl's stdin and the response is parsed
    from its stdout while it streams in. Aborting or timing out kills the
    process. ``ClientConfig.extra`` entries become extra command line flags:
    ``insecure=True`` adds ``--insecure``, ``max_redirs=3`` adds
    ``--max-redirs 3``.
    """

    kind = "curl"

    def __init__(self, config: tp.Optional[ClientConfig] = None, *, executable: str = "curl") -> None:
        super().__init__(config)
        self.executable = executable

    def check_available(self) -> None:
        if shutil.which(self.executable) is None:
            raise TransportUnavailable(f"The curl transport needs the {self.executable!r} executable on PATH")

    def build_command(self, request: Request) -> tp.List[str]:
        command = [
            shutil.which(self.executable) or self.executable,
            "--silent",
            "--show-error",
            "--include",
            "--location",
            "--globoff",
        ]
        if request.method == "HEAD":
            command.append("--head")
        else:
            command += ["--request", request.method]
        if self.config.user_agent is not None:
            command += ["--user-agent", self.config.user_agent]
        if self.config.proxy is not None:
            command += ["--proxy", self.config.proxy]
        for name, value in request.headers.multi_items():
            command += ["--header", f"{name}: {value}" if value else f"{name};"]
        command += ["--header", "Expect:"]
        if request.body is not None:
            command += ["--data-binary", "@-"]
            if "Content-Type" not in request.headers:
                # curl would otherwise label the body as a form
                command += ["--header", "Content-Type:"]
        for name, value in self.config.extra:
            flag = name if name.startswith("-") else "--" + name.replace("_", "-")
            if value is True:
                command.append(flag)
            elif value is not None and value is not False:
                command += [flag, str(value)]
        command += ["--url", request.url]
        return command

    async def exchange(self, request: Request, emit: Emit) -> Response:
        command = self.build_command(request)
        parser = CurlOutputParser(request.url)
        stdin = subprocess.PIPE if request.body is not None else subprocess.DEVNULL

        async with await anyio.open_process(command, stdin=stdin) as process:
            try:
                if request.body is not None:
                    assert process.stdin is not None
                    await process.stdin.send(request.body)
                    await process.stdin.aclose()

                assert process.stdout is not None
                async for data in process.stdout:
                    chunk = parser.feed(data)
                    if chunk:
                        await emit(chunk, parser.partial_response())
                chunk = parser.close()
                if chunk:
                    await emit(chunk, parser.partial_response())

                stderr = b""
                if process.stderr is not None:
                    stderr = b"".join([part async for part in process.stderr])
                returncode = await process.wait()
            except BaseException:
                if process.returncode is None:
                    process.kill()
                raise

        if returncode != 0:
            raise self._error_for(returncode, stderr.decode("utf-8", errors="replace").strip())
        if parser.status_code is None:
            raise EmptyResponseError("curl produced no response")
        return parser.to_response()

    def _error_for(self, returncode: int, message: str) -> CourierError:
        logger.debug(f"curl exited with code {returncode}")
        description = f"curl exited with code {returncode}" + (f": {message}" if message else "")
        if returncode == CURL_TIMEOUT:
            return RequestTimeout(description)
        if returncode == CURL_EMPTY_REPLY:
            return EmptyResponseError(description)
        return ConnectError(description)
