"""Asynchronous HTTP requests.

An HTTPRequest performs its transfer on a background thread. ``resolve``
blocks until the response is available; ``cancel`` may be called at any time
from any thread. Failures are delivered through ``resolve``, never raised on
the worker thread.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from typed_host.errors import HostError, SourceFailureError
from typed_host.format import FormatOptions
from typed_host.types import BinaryString, FormatSelector, Stringlike, Value

if TYPE_CHECKING:
    from typed_host.world import World

logger = logging.getLogger(__name__)


class HTTPHeaders(dict, Value):
    """Header names mapped to lists of values."""

    type_name = "HTTPHeaders"

    @classmethod
    def from_httpx(cls, headers: httpx.Headers) -> HTTPHeaders:
        result = cls()
        for name in headers.keys():
            result[name] = headers.get_list(name)
        return result

    def items_flat(self) -> list[tuple[str, str]]:
        """Return (name, value) pairs, one per value."""
        return [(name, value) for name, values in self.items() for value in values]

    def __repr__(self) -> str:
        return f"HTTPHeaders({dict.__repr__(self)})"


@dataclass
class HTTPOptions(Value):
    type_name = "HTTPOptions"

    url: str
    method: str = "GET"
    request_format: FormatSelector | None = None
    response_format: FormatSelector | None = None
    headers: HTTPHeaders = field(default_factory=HTTPHeaders)
    body: Value | None = None


@dataclass
class HTTPResponse(Value):
    type_name = "HTTPResponse"

    success: bool
    status_code: int
    status_message: str
    headers: HTTPHeaders = field(default_factory=HTTPHeaders)
    body: Value | None = None


class HTTPRequest(Value):
    """An in-flight or completed HTTP request."""

    type_name = "HTTPRequest"

    def __init__(self, world: World, options: HTTPOptions) -> None:
        self._world = world
        self._options = options
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._finished = False
        self._canceled = False
        self._response: HTTPResponse | None = None
        self._error: HostError | None = None
        self._thread: threading.Thread | None = None
        self._stream: httpx.Response | None = None

    @classmethod
    def begin(cls, world: World, options: HTTPOptions) -> HTTPRequest:
        """Encode the request body and start the transfer in the background.

        Errors encoding the body are raised immediately.
        """
        request = cls(world, options)
        content = request._encode_body()
        headers = HTTPHeaders(options.headers)
        if options.request_format is not None and not any(
            name.lower() == "content-type" for name in headers
        ):
            format = world.formats.get_or_raise(options.request_format.format)
            if format.media_types:
                headers["Content-Type"] = [format.media_types[0]]
        request._thread = threading.Thread(
            target=request._run,
            args=(content, headers),
            name=f"http-{options.method} {options.url}",
            daemon=True,
        )
        request._thread.start()
        return request

    @property
    def options(self) -> HTTPOptions:
        return self._options

    def _encode_body(self) -> bytes | None:
        body = self._options.body
        if body is None:
            return None
        selector = self._options.request_format
        if selector is None:
            if isinstance(body, Stringlike):
                return body.byteslike()
            raise SourceFailureError(f"request body of type {body.type()} requires a RequestFormat")
        format = self._world.formats.get_or_raise(selector.format)
        return format.encode(self._world, FormatOptions.from_selector(format, selector), body)

    def _decode_body(self, data: bytes) -> Value | None:
        selector = self._options.response_format
        if selector is None:
            return BinaryString(data)
        format = self._world.formats.get_or_raise(selector.format)
        return format.decode(self._world, FormatOptions.from_selector(format, selector), data)

    def _transfer(self, content: bytes | None, headers: HTTPHeaders) -> HTTPResponse | None:
        client = self._world.http_client
        request = client.build_request(
            self._options.method,
            self._options.url,
            headers=headers.items_flat(),
            content=content,
        )
        resp = client.send(request, stream=True)
        with self._lock:
            self._stream = resp
            canceled = self._canceled
        try:
            if canceled:
                return None
            data = resp.read()
        finally:
            resp.close()
        logger.debug("%s %s -> %d", self._options.method, self._options.url, resp.status_code)
        return HTTPResponse(
            success=resp.is_success,
            status_code=resp.status_code,
            status_message=f"{resp.status_code} {resp.reason_phrase}".strip(),
            headers=HTTPHeaders.from_httpx(resp.headers),
            body=self._decode_body(data),
        )

    def _run(self, content: bytes | None, headers: HTTPHeaders) -> None:
        response: HTTPResponse | None = None
        error: HostError | None = None
        try:
            response = self._transfer(content, headers)
        except httpx.HTTPError as err:
            error = SourceFailureError(f"{self._options.method} {self._options.url}: {err}")
            error.__cause__ = err
        except HostError as err:
            error = err
        except Exception as err:
            # Raised while reading a stream closed by cancel, or by a decoder.
            error = SourceFailureError(f"{self._options.method} {self._options.url}: {err}")
            error.__cause__ = err
        finally:
            with self._lock:
                self._stream = None
                if not self._canceled:
                    self._response = response
                    self._error = error
                    self._finished = True
            self._done.set()

    def resolve(self, timeout: float | None = None) -> HTTPResponse:
        """Block until the request completes and return its response.

        Raises SourceFailureError if the request failed or was canceled.
        """
        if not self._done.wait(timeout):
            raise SourceFailureError("request timed out")
        with self._lock:
            if self._canceled:
                raise SourceFailureError("request canceled")
            if self._error is not None:
                raise self._error
            if self._response is None:
                raise SourceFailureError("request completed without a response")
            return self._response

    def cancel(self) -> None:
        """Abort the request if it has not completed. Safe to call repeatedly.

        A response body still being received is closed. A request still
        waiting on the server is abandoned, and its response is discarded.
        """
        with self._lock:
            if self._finished or self._canceled:
                return
            self._canceled = True
            stream = self._stream
        logger.debug("canceled %s %s", self._options.method, self._options.url)
        if stream is not None:
            stream.close()
        self._done.set()

    @property
    def canceled(self) -> bool:
        with self._lock:
            return self._canceled

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished

    def __repr__(self) -> str:
        return f"<HTTPRequest {self._options.method} {self._options.url}>"
