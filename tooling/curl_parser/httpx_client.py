import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx

from .errors import ConversionError
from .request import HEADER_NAME_RE, ParsedRequest

logger = logging.getLogger(__name__)

HeaderValue = Union[str, bytes]


@dataclass(frozen=True)
class HttpxRequestBuilder:
    """
    A ParsedRequest materialized for httpx: request arguments plus the client
    settings (TLS verification, redirects) it has to be sent with.
    """
    method: str
    url: httpx.URL
    headers: tuple[tuple[str, HeaderValue], ...]
    content: Optional[bytes]
    verify: bool
    follow_redirects: bool
    timeout_s: Optional[float] = 30.0

    def client_kwargs(self) -> dict[str, Any]:
        return {
            "verify": self.verify,
            "follow_redirects": self.follow_redirects,
            "timeout": self.timeout_s,
        }

    def request_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = dict(
            method=self.method,
            url=self.url,
            headers=list(self.headers),
        )
        if self.content is not None:
            kwargs["content"] = self.content
        return kwargs

    def build_request(self, client: Optional[httpx.Client] = None) -> httpx.Request:
        if client is not None:
            return client.build_request(**self.request_kwargs())
        return httpx.Request(**self.request_kwargs())

    def client(self, **kwargs: Any) -> httpx.Client:
        return httpx.Client(**{**self.client_kwargs(), **kwargs})

    def async_client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(**{**self.client_kwargs(), **kwargs})

    async def send(self, *, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.Response:
        async with self.async_client(transport=transport) as client:
            return await client.request(**self.request_kwargs())


def _convert_url(raw: str) -> httpx.URL:
    if "{{" in raw or "{%" in raw:
        raise ConversionError(f"URL still contains template syntax: {raw!r}")
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as e:
        raise ConversionError(f"Invalid URL {raw!r}: {e}") from e
    if url.scheme not in ("http", "https"):
        raise ConversionError(f"URL must be absolute http(s), got {raw!r}")
    if not url.host:
        raise ConversionError(f"URL has no host: {raw!r}")
    return url


def _convert_headers(request: ParsedRequest) -> tuple[tuple[str, HeaderValue], ...]:
    out: list[tuple[str, HeaderValue]] = []
    for name, value in request.headers.pairs():
        if not HEADER_NAME_RE.match(name):
            raise ConversionError(f"Invalid header name: {name!r}")
        if any(c in value for c in "\r\n\0"):
            raise ConversionError(f"Invalid characters in value of header {name!r}")
        # httpx encodes str header values as ASCII; anything else goes as UTF-8 bytes.
        out.append((name, value if value.isascii() else value.encode("utf-8")))
    return tuple(out)


def to_httpx(request: ParsedRequest, *, timeout_s: Optional[float] = 30.0) -> HttpxRequestBuilder:
    """
    Materialize `request` for httpx. Raises ConversionError when the request cannot
    be sent as is, e.g. a URL kept raw (parse_url=False) that is not a valid absolute URL.
    """
    url = _convert_url(request.url)
    headers = _convert_headers(request)

    body = request.encoded_body()
    content = body.encode("utf-8") if body is not None else None

    logger.debug(
        "materialized %s %s (verify=%s, follow_redirects=%s)",
        request.method, url, not request.insecure, request.follow_redirects,
    )
    return HttpxRequestBuilder(
        method=request.method,
        url=url,
        headers=headers,
        content=content,
        verify=not request.insecure,
        follow_redirects=request.follow_redirects,
        timeout_s=timeout_s,
    )
