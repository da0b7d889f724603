from typing import Optional

from .errors import GrammarError

# Characters a backslash escapes inside a double-quoted shell string.
# Any other backslash is kept literally, so JSON escapes such as \n or \u00e9 pass through.
DOUBLE_QUOTE_ESCAPES = frozenset('"\\$`')


def unescape(s: str, *, offset: Optional[int] = None) -> str:
    """
    Resolve backslash escapes of a double-quoted segment.

      \\"  -> "
      \\\\  -> \\
      \\$  -> $
      \\`  -> `
      \\<newline> -> removed (line continuation)

    Unknown escapes keep both characters. A trailing lone backslash is a GrammarError.
    `offset` is only used to report where the segment started.
    """
    if "\\" not in s:
        return s

    out: list[str] = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            pos = None if offset is None else offset + i
            raise GrammarError("unterminated escape sequence", position=pos)

        nxt = s[i + 1]
        if nxt in DOUBLE_QUOTE_ESCAPES:
            out.append(nxt)
        elif nxt == "\n":
            pass
        else:
            out.append(ch)
            out.append(nxt)
        i += 2

    return "".join(out)


def escape(s: str) -> str:
    """
    Inverse of unescape() for the characters it resolves:
    the result can be placed between double quotes.
    """
    return "".join("\\" + ch if ch in DOUBLE_QUOTE_ESCAPES else ch for ch in s)


_ANSI_C_ESCAPES = {
    "a": "\a", "b": "\b", "e": "\x1b", "E": "\x1b", "f": "\f", "n": "\n",
    "r": "\r", "t": "\t", "v": "\v", "\\": "\\", "'": "'", '"': '"', "?": "?",
}

# \xHH, \uHHHH, \UHHHHHHHH: escape letter -> max hex digits
_ANSI_C_HEX = {"x": 2, "u": 4, "U": 8}


def ansi_c_unescape(s: str, *, offset: Optional[int] = None) -> str:
    """
    Resolve the body of a bash $'...' string, as browsers emit for "Copy as cURL (bash)".
    Octal (\\nnn) and hex (\\xHH, \\uHHHH, \\UHHHHHHHH) escapes are decoded; unknown
    escapes keep both characters.
    """
    out: list[str] = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            pos = None if offset is None else offset + i
            raise GrammarError("unterminated escape sequence", position=pos)

        nxt = s[i + 1]
        if nxt in _ANSI_C_ESCAPES:
            out.append(_ANSI_C_ESCAPES[nxt])
            i += 2
        elif nxt in _ANSI_C_HEX:
            j = i + 2
            while j < n and j - (i + 2) < _ANSI_C_HEX[nxt] and s[j] in "0123456789abcdefABCDEF":
                j += 1
            if j == i + 2:
                out.append(s[i:i + 2])
            else:
                code = int(s[i + 2:j], 16)
                if code > 0x10FFFF:
                    pos = None if offset is None else offset + i
                    raise GrammarError(f"invalid escape \\{s[i + 1:j]}", position=pos)
                out.append(chr(code))
            i = j
        elif nxt in "01234567":
            j = i + 1
            while j < n and j - (i + 1) < 3 and s[j] in "01234567":
                j += 1
            out.append(chr(int(s[i + 1:j], 8)))
            i = j
        else:
            out.append(ch)
            out.append(nxt)
            i += 2

    return "".join(out)
