import pytest

from tooling.curl_parser import Comment, Flag, GrammarError, Positional, tokenize
from tooling.curl_parser.grammar import Word, split_words


def _words(text: str) -> list[str]:
    return [w.text for w in split_words(text) if isinstance(w, Word)]


def _flags(text: str) -> list[tuple[str, object, object]]:
    return [(t.name, t.option, t.value) for t in tokenize(text) if isinstance(t, Flag)]


def _positionals(text: str) -> list[str]:
    return [t.value for t in tokenize(text) if isinstance(t, Positional)]


# ----------------------------
# Shell words
# ----------------------------

def test_split_words_mixed_quoting():
    text = r"""curl 'single "double" inside' "double 'single' inside" plain"""
    assert _words(text) == ["curl", 'single "double" inside', "double 'single' inside", "plain"]


def test_split_words_adjacent_segments_join():
    assert _words("""curl a'b c'"d e"f""") == ["curl", "ab cd ef"]


def test_split_words_escaped_quotes():
    assert _words(r'''curl "say \"hi\"" it\'s''') == ["curl", 'say "hi"', "it's"]


def test_split_words_single_quotes_are_literal():
    assert _words(r"""curl 'a\"b\\c'""") == ["curl", r"a\"b\\c"]


def test_split_words_empty_quoted_argument():
    assert _words("curl '' \"\"") == ["curl", "", ""]


def test_split_words_ansi_c_quoting():
    assert _words(r"""curl $'a\'b\nc' x$'\x41'y""") == ["curl", "a'b\nc", "xAy"]


def test_dollar_without_quote_is_literal():
    assert _words("curl $HOME 'a$b'") == ["curl", "$HOME", "a$b"]


def test_unterminated_ansi_c_quote():
    with pytest.raises(GrammarError) as ei:
        split_words(r"curl $'abc\'")
    assert ei.value.position == 5


def test_line_continuation_separates_words():
    text = 'curl \\\n  -X POST\\\n  https://x.io'
    assert _words(text) == ["curl", "-X", "POST", "https://x.io"]


def test_line_continuation_crlf():
    text = "curl \\\r\n  -L \\\r\n  https://x.io\r\n"
    assert _words(text) == ["curl", "-L", "https://x.io"]


def test_hash_inside_word_is_not_a_comment():
    assert _words("curl https://x.io/page#section") == ["curl", "https://x.io/page#section"]


def test_unterminated_single_quote():
    with pytest.raises(GrammarError) as ei:
        split_words("curl 'https://x.io")
    assert ei.value.position == 5


def test_unterminated_double_quote():
    with pytest.raises(GrammarError):
        split_words('curl -H "Accept: */*')


def test_double_quote_ending_in_escape_is_unterminated():
    with pytest.raises(GrammarError):
        split_words('curl "abc\\"')


def test_trailing_backslash_is_error():
    with pytest.raises(GrammarError):
        split_words("curl https://x.io \\")


# ----------------------------
# curl tokens
# ----------------------------

def test_leading_comments_are_skipped():
    text = "# fetch the thing\n   # and another\ncurl -k 'https://example.com/'"
    tokens = tokenize(text)
    assert isinstance(tokens[0], Comment)
    assert isinstance(tokens[1], Comment)
    assert tokens[0].text == "# fetch the thing"
    assert _positionals(text) == ["https://example.com/"]


def test_missing_curl_keyword():
    with pytest.raises(GrammarError, match="expected 'curl'"):
        tokenize("wget https://example.com")


def test_empty_input():
    with pytest.raises(GrammarError):
        tokenize("   \n# only a comment\n")


def test_flag_value_forms():
    text = "curl -HAccept:a -H Accept:b --header=Accept:c --header Accept:d https://x.io"
    assert _flags(text) == [
        ("-H", "header", "Accept:a"),
        ("-H", "header", "Accept:b"),
        ("--header", "header", "Accept:c"),
        ("--header", "header", "Accept:d"),
    ]


def test_short_flag_cluster():
    assert _flags("curl -Lk https://x.io") == [
        ("-L", "location", None),
        ("-k", "insecure", None),
    ]
    assert _flags("curl -sSLXPOST https://x.io") == [
        ("-s", None, None),
        ("-S", None, None),
        ("-L", "location", None),
        ("-X", "request", "POST"),
    ]


def test_boolean_flag_never_swallows_url():
    text = "curl -L https://api.example.com/v1/user-profile"
    assert _positionals(text) == ["https://api.example.com/v1/user-profile"]


def test_hyphenated_url_is_positional():
    assert _positionals("curl https://api.example.com/v1/user-profile") == [
        "https://api.example.com/v1/user-profile"
    ]


def test_value_flag_takes_next_word_even_if_it_starts_with_dash():
    assert _flags("curl -d -x=1 https://x.io") == [("-d", "data", "-x=1")]


def test_body_with_dashes_is_not_split():
    text = """curl --location https://example.com -d '{"-name":"--John"," --age":30}'"""
    assert _flags(text)[-1] == ("-d", "data", '{"-name":"--John"," --age":30}')
    assert _positionals(text) == ["https://example.com"]


def test_unsupported_value_options_consume_their_argument():
    text = "curl -m 60 --connect-timeout 5 -o out.json -A agent/1.0 https://x.io"
    assert _positionals(text) == ["https://x.io"]
    assert [f[0] for f in _flags(text)] == ["-m", "--connect-timeout", "-o", "-A"]
    assert all(f[1] is None for f in _flags(text))


def test_unsupported_boolean_options_do_not_consume():
    text = "curl --compressed -v https://x.io"
    assert _positionals(text) == ["https://x.io"]


def test_double_dash_ends_options():
    assert _positionals("curl -- -weird-host.example") == ["-weird-host.example"]


def test_lone_dash_is_positional():
    assert _positionals("curl -") == ["-"]


def test_missing_flag_value():
    with pytest.raises(GrammarError, match="-H"):
        tokenize("curl https://x.io -H")


def test_url_flag():
    assert _flags("curl --url https://x.io") == [("--url", "url", "https://x.io")]


def test_data_aliases():
    text = "curl --data-raw a --data-binary b --data-ascii c --data-urlencode d https://x.io"
    assert [f[1] for f in _flags(text)] == ["data", "data", "data", "data-urlencode"]


def test_comment_between_words_never_becomes_a_value():
    text = "curl -H\n# note\n'Accept: */*' https://x.io"
    tokens = tokenize(text)
    assert any(isinstance(t, Comment) for t in tokens)
    assert _flags(text) == [("-H", "header", "Accept: */*")]
