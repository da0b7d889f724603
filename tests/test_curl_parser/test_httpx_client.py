import base64
import json

import httpx
import pytest

from tooling.curl_parser import ConversionError, ParsedRequest, parse, to_httpx


CURL_CREATE_RESPONSE = (
    "curl https://api.openai.com/v1/responses "
    '-H "Content-Type: application/json" '
    '-H "Authorization: Bearer sk-test" '
    "-d '{\"model\":\"gpt-4o-mini\",\"input\":\"Tell me a story about a unicorn.\"}'"
)

CURL_FORM_WITH_AUTH = (
    "curl -Lk https://api.example.com/messages "
    "-u AC1:secret "
    "-d 'To=1 555' -d 'Body=hi there'"
)


def test_to_httpx_json_request():
    builder = to_httpx(parse(CURL_CREATE_RESPONSE))
    request = builder.build_request()

    assert request.method == "POST"
    assert str(request.url) == "https://api.openai.com/v1/responses"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Authorization"] == "Bearer sk-test"
    assert request.headers["Accept"] == "*/*"

    body = json.loads(request.content.decode("utf-8"))
    assert body["model"] == "gpt-4o-mini"


def test_to_httpx_client_settings():
    builder = to_httpx(parse(CURL_FORM_WITH_AUTH), timeout_s=5.0)
    assert builder.client_kwargs() == {"verify": False, "follow_redirects": True, "timeout": 5.0}

    secure = to_httpx(parse("curl https://x.io"))
    assert secure.verify is True
    assert secure.follow_redirects is False


def test_to_httpx_form_body_and_basic_auth():
    request = to_httpx(parse(CURL_FORM_WITH_AUTH)).build_request()

    assert request.content == b"To=1+555&Body=hi+there"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    token = request.headers["Authorization"].split(" ", 1)[1]
    assert base64.b64decode(token) == b"AC1:secret"


def test_to_httpx_no_body():
    builder = to_httpx(parse("curl https://x.io/items"))
    assert builder.content is None
    assert "content" not in builder.request_kwargs()


def test_to_httpx_build_with_client():
    builder = to_httpx(parse("curl -X DELETE https://x.io/items/1"))
    with builder.client() as client:
        request = builder.build_request(client)
    assert request.method == "DELETE"
    assert request.url.path == "/items/1"


def test_to_httpx_non_ascii_header_value():
    request = to_httpx(parse("curl -H 'X-Name: Zoë' https://x.io")).build_request()
    assert (b"X-Name", "Zoë".encode("utf-8")) in request.headers.raw


def test_conversion_error_for_unresolved_template_url():
    req = parse("curl '{{ base }}/users'", parse_url=False)
    with pytest.raises(ConversionError):
        to_httpx(req)


def test_conversion_error_for_relative_url():
    req = parse("curl example.com/users", parse_url=False)
    with pytest.raises(ConversionError):
        to_httpx(req)


def test_conversion_error_for_bad_port():
    req = ParsedRequest(url="http://example.com:notaport/")
    with pytest.raises(ConversionError):
        to_httpx(req)


def test_conversion_error_for_header_injection():
    req = ParsedRequest(url="https://x.io", headers={"X-Evil": "a\r\nInjected: 1"})
    with pytest.raises(ConversionError):
        to_httpx(req)


def test_conversion_error_is_not_a_build_error():
    from tooling.curl_parser import BuildError

    assert not issubclass(ConversionError, BuildError)


@pytest.mark.asyncio
async def test_send_through_mock_transport():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.content
        return httpx.Response(201, json={"sid": "SM1"}, headers={"Content-Type": "application/json"})

    builder = to_httpx(parse(CURL_FORM_WITH_AUTH))
    resp = await builder.send(transport=httpx.MockTransport(handler))

    assert resp.status_code == 201
    assert resp.json() == {"sid": "SM1"}
    assert seen["method"] == "POST"
    assert seen["url"] == "https://api.example.com/messages"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"] == b"To=1+555&Body=hi+there"


@pytest.mark.asyncio
async def test_send_follows_redirects_when_requested():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(302, headers={"Location": "https://x.io/new"})
        return httpx.Response(200, text="moved")

    transport = httpx.MockTransport(handler)

    followed = await to_httpx(parse("curl -L https://x.io/old")).send(transport=transport)
    assert followed.status_code == 200
    assert followed.text == "moved"

    not_followed = await to_httpx(parse("curl https://x.io/old")).send(transport=transport)
    assert not_followed.status_code == 302
