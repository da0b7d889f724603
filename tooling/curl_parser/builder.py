import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import quote_plus, urlsplit, urlunsplit

import httpx

from .errors import (
    AuthFormatError,
    DuplicateHeaderError,
    DuplicateUrlError,
    InvalidHeaderError,
    InvalidUrlError,
    MissingUrlError,
    UnsupportedMethodError,
)
from .escape import unescape
from .grammar import Flag, Positional, Token
from .request import (
    FORM_CONTENT_TYPE,
    HEADER_NAME_RE,
    STANDARD_METHODS,
    BasicAuth,
    HeaderMap,
    ParsedRequest,
    is_form_fragment,
)

logger = logging.getLogger(__name__)

# Headers whose repeated occurrences combine into one value instead of conflicting.
LIST_HEADER_SEPARATORS: dict[str, str] = {
    "accept": ", ",
    "accept-charset": ", ",
    "accept-encoding": ", ",
    "accept-language": ", ",
    "cache-control": ", ",
    "connection": ", ",
    "cookie": "; ",
    "forwarded": ", ",
    "if-match": ", ",
    "if-none-match": ", ",
    "pragma": ", ",
    "prefer": ", ",
    "te": ", ",
    "trailer": ", ",
    "upgrade": ", ",
    "via": ", ",
    "warning": ", ",
}


@dataclass
class FlagBuckets:
    """Every flag occurrence, grouped per recognized option, in command order."""
    methods: list[str] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    data: list[str] = field(default_factory=list)
    users: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    follow_redirects: bool = False
    insecure: bool = False
    ignored: list[str] = field(default_factory=list)


def _urlencode_data(value: str) -> str:
    # --data-urlencode: "name=content" encodes only content, plain "content" encodes all of it.
    name, sep, content = value.partition("=")
    if sep and name:
        return f"{name}={quote_plus(content)}"
    return quote_plus(content if sep else value)


def collect(tokens: Iterable[Token]) -> FlagBuckets:
    b = FlagBuckets()
    for tok in tokens:
        if isinstance(tok, Positional):
            b.urls.append(tok.value)
        elif isinstance(tok, Flag):
            opt = tok.option
            if opt == "request":
                b.methods.append(tok.value or "")
            elif opt == "header":
                b.headers.append(tok.value or "")
            elif opt == "data":
                b.data.append(tok.value or "")
            elif opt == "data-urlencode":
                b.data.append(_urlencode_data(tok.value or ""))
            elif opt == "user":
                b.users.append(tok.value or "")
            elif opt == "url":
                b.urls.append(tok.value or "")
            elif opt == "location":
                b.follow_redirects = True
            elif opt == "insecure":
                b.insecure = True
            else:
                b.ignored.append(tok.name)
    if b.ignored:
        logger.debug("ignoring unsupported curl options: %s", ", ".join(b.ignored))
    return b


# ----------------------------
# Precedence rules
# ----------------------------

def _resolve_method(b: FlagBuckets) -> str:
    if b.methods:
        method = b.methods[-1].strip().upper()
        if method not in STANDARD_METHODS:
            raise UnsupportedMethodError(f"Unsupported or unrecognized HTTP method: {b.methods[-1]!r}")
        return method
    return "POST" if b.data else "GET"


def _resolve_url(b: FlagBuckets, parse_url: bool) -> str:
    if not b.urls:
        raise MissingUrlError("curl: no URL found")
    if len(b.urls) > 1:
        raise DuplicateUrlError(f"curl: more than one URL given: {b.urls[0]!r}, {b.urls[1]!r}")

    raw = b.urls[0]
    if not parse_url:
        return raw

    # curl defaults to http:// when the scheme is missing
    url = raw if "://" in raw else "http://" + raw
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise InvalidUrlError(f"Invalid URL {raw!r}: {e}") from e
    if not parsed.host:
        raise InvalidUrlError(f"Invalid URL {raw!r}: missing host")

    # an absolute URL always carries a path: http://host -> http://host/
    parts = urlsplit(url)
    if not parts.path:
        url = urlunsplit(parts._replace(path="/"))
    return url


def split_header(raw: str) -> tuple[str, str]:
    """
    "Name: value" -> ("Name", "value"). Split on the first colon, surrounding whitespace trimmed.
    curl's "Name;" form and a bare name both give an empty value.
    Escaped quotes in the value are resolved however the header was quoted,
    so a single-quoted '{\\"k\\":\\"v\\"}' yields {"k":"v"}.
    """
    if ":" in raw:
        name, value = raw.split(":", 1)
    else:
        name, value = raw.rstrip(), ""
        if name.endswith(";"):
            name = name[:-1]
    name = name.strip()
    if not HEADER_NAME_RE.match(name):
        raise InvalidHeaderError(f"Invalid header name in {raw!r}")
    return name, unescape(value.strip())


def _merge_headers(raw_headers: list[str]) -> dict[str, list[str]]:
    # lower-cased name -> [name as first written, value]
    merged: dict[str, list[str]] = {}
    for raw in raw_headers:
        name, value = split_header(raw)
        key = name.lower()
        if key not in merged:
            merged[key] = [name, value]
            continue

        existing = merged[key][1]
        if existing == value:
            continue
        sep = LIST_HEADER_SEPARATORS.get(key)
        if sep is None:
            raise DuplicateHeaderError(
                f"Header {name!r} given twice with different values: {existing!r} and {value!r}"
            )
        merged[key][1] = f"{existing}{sep}{value}"
    return merged


def _resolve_auth(b: FlagBuckets) -> Optional[BasicAuth]:
    if not b.users:
        return None
    raw = b.users[-1]
    if ":" not in raw:
        raise AuthFormatError("curl: -u expects user:password")
    user, pw = raw.split(":", 1)
    return BasicAuth(username=user, password=pw)


def build_request(tokens: Iterable[Token], *, parse_url: bool = True) -> ParsedRequest:
    """
    Turn tokens into a ParsedRequest. All occurrences are collected first, then
    resolved in a fixed order: method, URL, headers, body, auth, defaults.
    """
    b = collect(tokens)

    method = _resolve_method(b)
    url = _resolve_url(b, parse_url)
    headers = _merge_headers(b.headers)
    body = tuple(b.data)
    auth = _resolve_auth(b)

    if auth is not None and "authorization" not in headers:
        headers["authorization"] = ["Authorization", auth.header_value()]

    if "accept" not in headers:
        logger.debug("no Accept header, defaulting to */*")
        headers["accept"] = ["Accept", "*/*"]

    if body and "content-type" not in headers and all(is_form_fragment(f) for f in body):
        logger.debug("key=value body without Content-Type, defaulting to %s", FORM_CONTENT_TYPE)
        headers["content-type"] = ["Content-Type", FORM_CONTENT_TYPE]

    return ParsedRequest(
        method=method,  # type: ignore[arg-type]
        url=url,
        headers=HeaderMap((name, value) for name, value in headers.values()),
        body=body,
        auth=auth,
        insecure=b.insecure,
        follow_redirects=b.follow_redirects,
    )
