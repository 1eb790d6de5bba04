"""HTTP source. Reading performs a GET; writing performs a POST."""

from __future__ import annotations

import logging

import httpx

from typed_host.errors import SourceFailureError
from typed_host.sources.base import Source

logger = logging.getLogger(__name__)


class HTTPSource(Source):
    """References are URLs. A response outside the 2xx range is a failure."""

    name = "http"

    def __init__(self, client: httpx.Client) -> None:
        self.client = client

    def _request(self, method: str, url: str, content: bytes | None = None) -> httpx.Response:
        try:
            response = self.client.request(method, url, content=content)
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            status = err.response
            raise SourceFailureError(
                f"{method} {url}: {status.status_code} {status.reason_phrase}".rstrip()
            ) from err
        except httpx.HTTPError as err:
            raise SourceFailureError(f"{method} {url}: {err}") from err
        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    def read(self, reference: str) -> bytes:
        return self._request("GET", reference).content

    def write(self, reference: str, data: bytes) -> None:
        self._request("POST", reference, content=data)
