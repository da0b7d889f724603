from typing import Any, Mapping, Optional

from .builder import build_request
from .grammar import tokenize
from .httpx_client import HttpxRequestBuilder, to_httpx
from .request import ParsedRequest
from .template import RenderContext, SecretResolver, TemplateRenderer


def parse(curl_text: str, *, parse_url: bool = True) -> ParsedRequest:
    """
    Parse a curl command with no templating.

    Supported:
      - URL: positional argument or --url <url> (exactly one)
      - Method: -X/--request <METHOD>; POST when -d is given, GET otherwise
      - Headers: -H/--header "Key: Value"
      - Body: -d/--data/--data-raw/--data-binary/--data-ascii/--data-urlencode
      - Auth: -u/--user user:password (Basic), unless an Authorization header is given
      - Redirects: -L/--location
      - TLS verify: -k/--insecure

    Other curl options are ignored. With parse_url=False the URL is kept verbatim
    (useful while it still holds template placeholders).
    """
    return build_request(tokenize(curl_text), parse_url=parse_url)


def load(
    curl_text: str,
    context: Optional[RenderContext] = None,
    *,
    renderer: Optional[TemplateRenderer] = None,
    parse_url: bool = True,
) -> ParsedRequest:
    """
    Render {{ placeholders }} from `context`, then parse.
    Pass a long-lived `renderer` when parsing many commands so templates are compiled once.
    """
    if context is not None:
        renderer = renderer or TemplateRenderer(cache_size=0)
        curl_text = renderer.render(curl_text, context)
    return parse(curl_text, parse_url=parse_url)


class CurlParser:
    """
    Main entrypoint when parsing more than one command.

    - parse(curl_text): no templating
    - load(curl_text, context): render then parse, sharing one template cache
    - to_httpx(request): materialize for the httpx client

    Secrets are available in templates as {{ env.NAME }}; they resolve through
    SecretResolver (explicit mapping, os.environ, fallback).
    """

    def __init__(
        self,
        *,
        secrets: Optional[SecretResolver] = None,
        auto_dotenv: bool = False,
        dotenv_path: Optional[str] = None,
        dotenv_override: bool = False,
        parse_url: bool = True,
        template_cache_size: int = 128,
        timeout_s: Optional[float] = 30.0,
    ):
        self.secrets = secrets or SecretResolver(
            auto_dotenv=auto_dotenv,
            dotenv_path=dotenv_path,
            dotenv_override=dotenv_override,
        )
        self.parse_url = parse_url
        self.timeout_s = timeout_s
        self.renderer = TemplateRenderer(secrets=self.secrets, cache_size=template_cache_size)

    def _parse_url(self, parse_url: Optional[bool]) -> bool:
        return self.parse_url if parse_url is None else parse_url

    def render(self, curl_text: str, context: Optional[RenderContext] = None) -> str:
        return self.renderer.render(curl_text, context)

    def parse(self, curl_text: str, *, parse_url: Optional[bool] = None) -> ParsedRequest:
        return parse(curl_text, parse_url=self._parse_url(parse_url))

    def load(
        self,
        curl_text: str,
        context: Optional[RenderContext] = None,
        *,
        parse_url: Optional[bool] = None,
    ) -> ParsedRequest:
        return load(curl_text, context, renderer=self.renderer, parse_url=self._parse_url(parse_url))

    def to_httpx(self, request: ParsedRequest, *, timeout_s: Optional[float] = None) -> HttpxRequestBuilder:
        return to_httpx(request, timeout_s=self.timeout_s if timeout_s is None else timeout_s)

    def from_dict(self, d: Mapping[str, Any]) -> ParsedRequest:
        """Rehydrate a request produced by ParsedRequest.to_dict()."""
        return ParsedRequest.from_dict(d)
