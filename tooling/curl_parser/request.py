import base64
import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Literal, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode

from .errors import DuplicateHeaderError, MissingUrlError, UnsupportedMethodError

HttpMethod = Literal["GET", "HEAD", "POST", "PUT", "DELETE", "CONNECT", "OPTIONS", "TRACE", "PATCH"]
STANDARD_METHODS = ("GET", "HEAD", "POST", "PUT", "DELETE", "CONNECT", "OPTIONS", "TRACE", "PATCH")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# RFC 9110 token
HEADER_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

HeaderItems = Union[Mapping[str, str], Iterable[tuple[str, str]]]


class HeaderMap(Mapping[str, str]):
    """
    Immutable, insertion-ordered header mapping with case-insensitive lookup.
    Names keep the spelling they were first given.
    """
    __slots__ = ("_items", "_index")

    def __init__(self, items: HeaderItems = ()):
        pairs = items.items() if isinstance(items, Mapping) else items
        self._items: tuple[tuple[str, str], ...] = tuple((str(k), str(v)) for k, v in pairs)
        self._index: dict[str, int] = {}
        for i, (k, _) in enumerate(self._items):
            key = k.lower()
            if key in self._index:
                raise ValueError(f"Duplicate header name: {k}")
            self._index[key] = i

    def __getitem__(self, name: str) -> str:
        return self._items[self._index[name.lower()]][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._index

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderMap):
            return self._folded() == other._folded()
        if isinstance(other, Mapping):
            try:
                return self._folded() == HeaderMap(other)._folded()
            except ValueError:
                return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._folded().items()))

    def __repr__(self) -> str:
        return f"HeaderMap({list(self._items)!r})"

    def _folded(self) -> dict[str, str]:
        return {k.lower(): v for k, v in self._items}

    def pairs(self) -> list[tuple[str, str]]:
        return list(self._items)


@dataclass(frozen=True)
class BasicAuth:
    username: str
    password: str = ""

    def header_value(self) -> str:
        token = base64.b64encode(f"{self.username}:{self.password}".encode("utf-8")).decode("ascii")
        return f"Basic {token}"


# ----------------------------
# Body helpers
# ----------------------------

def _is_json(s: str) -> bool:
    try:
        json.loads(s)
    except ValueError:
        return False
    return True


def is_form_fragment(fragment: str) -> bool:
    """
    True when `fragment` reads as key=value pairs ("a=1", "a=1&b=2") and is not a JSON document.
    """
    if _is_json(fragment):
        return False
    pieces = [p for p in fragment.split("&") if p]
    if not pieces:
        return False
    for p in pieces:
        key, sep, _ = p.partition("=")
        if not sep or not key.strip():
            return False
    return True


@dataclass(frozen=True)
class ParsedRequest:
    method: HttpMethod = "GET"
    url: str = ""
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: tuple[str, ...] = ()
    auth: Optional[BasicAuth] = None
    insecure: bool = False
    follow_redirects: bool = False

    def __post_init__(self) -> None:
        # Own every container outright; callers may keep mutating what they passed in.
        if not isinstance(self.headers, HeaderMap):
            object.__setattr__(self, "headers", HeaderMap(self.headers))
        object.__setattr__(self, "body", tuple(str(b) for b in self.body))

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    @property
    def is_form(self) -> bool:
        return bool(self.body) and all(is_form_fragment(b) for b in self.body)

    def form_pairs(self) -> list[tuple[str, str]]:
        """Decoded (key, value) pairs of a form body, in command order. Duplicate keys are kept."""
        pairs: list[tuple[str, str]] = []
        for fragment in self.body:
            pairs.extend(parse_qsl(fragment, keep_blank_values=True))
        return pairs

    def encoded_body(self) -> Optional[str]:
        """
        The body as it goes on the wire:
          - None when no -d was given
          - form-urlencoded pairs joined with "&" when every fragment is key=value
          - otherwise fragments joined with "&" untouched (curl's own joining)
        """
        if not self.body:
            return None
        if self.is_form:
            return urlencode(self.form_pairs())
        return "&".join(self.body)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe snapshot; from_dict() restores it without re-running inference."""
        return {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers.pairs()),
            "body": list(self.body),
            "auth": (
                {"username": self.auth.username, "password": self.auth.password}
                if self.auth is not None else None
            ),
            "insecure": self.insecure,
            "follow_redirects": self.follow_redirects,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ParsedRequest":
        dd = dict(d)

        method = str(dd.get("method", "GET")).upper()
        if method not in STANDARD_METHODS:
            raise UnsupportedMethodError(f"Unsupported or unrecognized HTTP method: {method}")

        if not dd.get("url"):
            raise MissingUrlError("Request dict has no 'url'")

        try:
            headers = HeaderMap(dd.get("headers") or {})
        except ValueError as e:
            raise DuplicateHeaderError(str(e)) from e

        auth = dd.get("auth")
        auth_spec: Optional[BasicAuth] = None
        if isinstance(auth, dict) and auth.get("username") is not None:
            auth_spec = BasicAuth(username=str(auth["username"]), password=str(auth.get("password") or ""))

        return cls(
            method=method,  # type: ignore[arg-type]
            url=str(dd["url"]),
            headers=headers,
            body=tuple(dd.get("body") or ()),
            auth=auth_spec,
            insecure=bool(dd.get("insecure", False)),
            follow_redirects=bool(dd.get("follow_redirects", False)),
        )
