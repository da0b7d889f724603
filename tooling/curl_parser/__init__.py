from .errors import (
    CurlParserError,
    TemplateError,
    GrammarError,
    BuildError,
    DuplicateUrlError,
    DuplicateHeaderError,
    AuthFormatError,
    MissingUrlError,
    UnsupportedMethodError,
    InvalidHeaderError,
    InvalidUrlError,
    ConversionError,
)
from .escape import ansi_c_unescape, escape, unescape
from .template import SecretResolver, TemplateRenderer, render_template
from .grammar import Comment, Flag, Positional, Token, tokenize
from .request import BasicAuth, HeaderMap, ParsedRequest
from .builder import build_request
from .httpx_client import HttpxRequestBuilder, to_httpx
from .parser import CurlParser, load, parse
