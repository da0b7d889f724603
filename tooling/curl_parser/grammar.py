"""
curl command grammar.

Two passes over the (already rendered) text:

  1) split_words(): a shell-word lexer. States are driven by character class:
     plain, single-quoted, double-quoted, bash $'...' and backslash-escape.
     A backslash before a newline is a line continuation and separates words.
     `#` at the start of a word opens a comment that runs to the end of the line.

  2) tokenize(): classifies words into Flag / Positional / Comment tokens.
     Flags that take a value get it from `-Hvalue`, `-H value`, `--header=value`
     or `--header value`. Boolean flags never consume the next word, so a URL
     following `-L` or `-k` always stays positional.
"""
from dataclasses import dataclass
from typing import Iterator, Optional, Union

from .errors import GrammarError
from .escape import ansi_c_unescape, unescape

# Canonical option names the builder acts on.
SHORT_OPTIONS: dict[str, str] = {
    "X": "request",
    "H": "header",
    "d": "data",
    "u": "user",
    "L": "location",
    "k": "insecure",
}

LONG_OPTIONS: dict[str, str] = {
    "request": "request",
    "header": "header",
    "data": "data",
    "data-raw": "data",
    "data-binary": "data",
    "data-ascii": "data",
    "data-urlencode": "data-urlencode",
    "user": "user",
    "url": "url",
    "location": "location",
    "insecure": "insecure",
    "insecive": "insecure",
}

VALUE_OPTIONS = frozenset({"request", "header", "data", "data-urlencode", "user", "url"})

# Unsupported curl options that still take an argument. They are ignored,
# but their argument must be consumed so it is never mistaken for the URL.
UNSUPPORTED_SHORT_WITH_VALUE = frozenset("AbcCDeEFKmoPQrtTUwxyYz")

UNSUPPORTED_LONG_WITH_VALUE = frozenset({
    "abstract-unix-socket", "aws-sigv4", "cacert", "capath", "cert", "cert-type",
    "ciphers", "config", "connect-timeout", "connect-to", "continue-at", "cookie",
    "cookie-jar", "crlfile", "delegation", "dns-servers", "dump-header", "engine",
    "expect100-timeout", "form", "form-string", "ftp-port", "happy-eyeballs-timeout-ms",
    "interface", "ip-tos", "json", "keepalive-time", "key", "key-type", "limit-rate",
    "local-port", "login-options", "mail-from", "mail-rcpt", "max-filesize",
    "max-redirs", "max-time", "netrc-file", "noproxy", "oauth2-bearer", "output",
    "output-dir", "pass", "pinnedpubkey", "preproxy", "proxy", "proxy-header",
    "proxy-user", "quote", "range", "referer", "request-target", "resolve", "retry",
    "retry-delay", "retry-max-time", "sasl-authzid", "service-name", "socks5",
    "socks5-hostname", "speed-limit", "speed-time", "stderr", "time-cond", "tls-max",
    "trace", "trace-ascii", "unix-socket", "upload-file", "user-agent", "variable",
    "write-out",
})

_WHITESPACE = " \t\r\n"


# ----------------------------
# Tokens
# ----------------------------

@dataclass(frozen=True)
class Word:
    text: str
    position: int


@dataclass(frozen=True)
class Comment:
    text: str
    position: int


@dataclass(frozen=True)
class Flag:
    name: str  # as written: "-H", "--header"
    option: Optional[str] = None  # canonical name, None when unsupported
    value: Optional[str] = None
    position: int = 0


@dataclass(frozen=True)
class Positional:
    value: str
    position: int = 0


Token = Union[Flag, Positional, Comment]


# ----------------------------
# Pass 1: shell words
# ----------------------------

def _continuation_length(text: str, i: int) -> int:
    # Backslash at text[i]; returns how many chars the line continuation spans (0 if none).
    if text.startswith("\\\n", i):
        return 2
    if text.startswith("\\\r\n", i):
        return 3
    return 0


def split_words(text: str) -> list[Union[Word, Comment]]:
    items: list[Union[Word, Comment]] = []
    buf: list[str] = []
    in_word = False
    word_start = 0

    def flush() -> None:
        nonlocal in_word
        if in_word:
            items.append(Word("".join(buf), word_start))
            buf.clear()
            in_word = False

    def begin(pos: int) -> None:
        nonlocal in_word, word_start
        if not in_word:
            in_word = True
            word_start = pos

    i = 0
    n = len(text)
    while i < n:
        ch = text[i]

        if ch == "\\":
            skip = _continuation_length(text, i)
            if skip:
                flush()
                i += skip
                continue
            if i + 1 >= n:
                raise GrammarError("unterminated escape sequence", position=i)
            begin(i)
            buf.append(text[i + 1])
            i += 2
            continue

        if ch in _WHITESPACE:
            flush()
            i += 1
            continue

        if ch == "#" and not in_word:
            end = text.find("\n", i)
            if end == -1:
                end = n
            items.append(Comment(text[i:end].rstrip("\r"), i))
            i = end
            continue

        if ch == "$" and text.startswith("'", i + 1):
            # bash ANSI-C quoting: $'...' with backslash escapes, \' does not close it
            j = i + 2
            while j < n and text[j] != "'":
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise GrammarError("unterminated $' quote", position=i)
            begin(i)
            buf.append(ansi_c_unescape(text[i + 2:j], offset=i + 2))
            i = j + 1
            continue

        if ch == "'":
            end = text.find("'", i + 1)
            if end == -1:
                raise GrammarError("unterminated single quote", position=i)
            begin(i)
            buf.append(text[i + 1:end])
            i = end + 1
            continue

        if ch == '"':
            j = i + 1
            while j < n and text[j] != '"':
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise GrammarError("unterminated double quote", position=i)
            begin(i)
            buf.append(unescape(text[i + 1:j], offset=i + 1))
            i = j + 1
            continue

        begin(i)
        buf.append(ch)
        i += 1

    flush()
    return items


# ----------------------------
# Pass 2: curl tokens
# ----------------------------

def _words(items: list[Union[Word, Comment]], tokens: list[Token]) -> Iterator[Word]:
    # Comments between words are recorded in place and never taken as flag values.
    for item in items:
        if isinstance(item, Comment):
            tokens.append(item)
        else:
            yield item


def _take_value(words: Iterator[Word], flag: str, position: int) -> str:
    nxt = next(words, None)
    if nxt is None:
        raise GrammarError(f"curl: missing argument for {flag}", position=position)
    return nxt.text


def _long_flag(word: Word, words: Iterator[Word]) -> Flag:
    name, sep, inline = word.text[2:].partition("=")
    option = LONG_OPTIONS.get(name)
    takes_value = option in VALUE_OPTIONS if option else name in UNSUPPORTED_LONG_WITH_VALUE

    value: Optional[str] = None
    if sep:
        value = inline
    elif takes_value:
        value = _take_value(words, "--" + name, word.position)
    return Flag(name="--" + name, option=option, value=value, position=word.position)


def _short_flags(word: Word, words: Iterator[Word]) -> list[Flag]:
    # -Lk is two flags, -XPOST is -X with an attached value.
    out: list[Flag] = []
    letters = word.text[1:]
    for j, c in enumerate(letters):
        option = SHORT_OPTIONS.get(c)
        takes_value = option in VALUE_OPTIONS if option else c in UNSUPPORTED_SHORT_WITH_VALUE
        if not takes_value:
            out.append(Flag(name="-" + c, option=option, position=word.position))
            continue
        rest = letters[j + 1:]
        value = rest if rest else _take_value(words, "-" + c, word.position)
        out.append(Flag(name="-" + c, option=option, value=value, position=word.position))
        break
    return out


def tokenize(text: str) -> list[Token]:
    """
    Tokenize a curl command. Leading comments are allowed; the first word must be `curl`.
    Raises GrammarError on malformed quoting or a missing `curl` keyword.
    """
    items = split_words(text)

    tokens: list[Token] = []
    idx = 0
    while idx < len(items) and isinstance(items[idx], Comment):
        tokens.append(items[idx])
        idx += 1

    if idx >= len(items):
        raise GrammarError("empty command: expected 'curl'")

    first = items[idx]
    if first.text != "curl":
        raise GrammarError(f"expected 'curl', found {first.text!r}", position=first.position)

    words = _words(items[idx + 1:], tokens)
    options_done = False

    for word in words:
        t = word.text
        if options_done or t == "-" or not t.startswith("-"):
            tokens.append(Positional(t, word.position))
        elif t == "--":
            options_done = True
        elif t.startswith("--"):
            tokens.append(_long_flag(word, words))
        else:
            tokens.extend(_short_flags(word, words))

    return tokens
