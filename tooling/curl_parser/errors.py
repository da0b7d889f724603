from typing import Optional


class CurlParserError(ValueError):
    """
    Base class for everything the curl parser raises.
    Subclasses ValueError so callers that already catch ValueError keep working.
    """


class TemplateError(CurlParserError):
    """Unresolved variable or malformed placeholder while rendering."""


class GrammarError(CurlParserError):
    """
    Malformed quoting, missing `curl` keyword, unterminated escape sequence
    or a flag missing its value.
    """

    def __init__(self, message: str, *, position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)
        self.position = position


# ----------------------------
# Semantic builder failures
# ----------------------------

class BuildError(CurlParserError):
    pass


class DuplicateUrlError(BuildError):
    pass


class DuplicateHeaderError(BuildError):
    pass


class AuthFormatError(BuildError):
    pass


class MissingUrlError(BuildError):
    pass


class UnsupportedMethodError(BuildError):
    pass


class InvalidHeaderError(BuildError):
    pass


class InvalidUrlError(BuildError):
    pass


class ConversionError(CurlParserError):
    """Failure while materializing a ParsedRequest into an HTTP client request."""
