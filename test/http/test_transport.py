import httpx
import ssl

from pytest import mark
from socket import gaierror
from time import sleep

from curlish.http import HttpxTransport, Request, TransportOptions, parse_response
from curlish.http.transport import describe_error_code


def create_transport(handler) -> HttpxTransport:
    return HttpxTransport(httpx.MockTransport(handler))


def test_raw_response_contains_headers_and_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, headers={"Content-Type": "text/plain", "X-Foo": "bar"}, content=b"hi"
        )

    raw, info = create_transport(handler).execute(
        Request("GET", "http://example.com/")
    )

    assert raw == (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: text/plain\r\n"
        b"X-Foo: bar\r\n"
        b"Content-Length: 2\r\n"
        b"\r\n"
        b"hi"
    )
    assert info.error_code == 0
    assert not info.failed
    assert info.header_size == len(raw) - 2
    assert info.status_code == 200
    assert info.effective_url == "http://example.com/"
    assert info.redirect_count == 0
    assert info.content_type == "text/plain"


def test_raw_response_contains_every_hop_of_a_redirect_chain():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(302, headers={"Location": "/new"})
        return httpx.Response(200, headers={"X-Final": "yes"}, content=b"moved")

    raw, info = create_transport(handler).execute(
        Request("GET", "http://example.com/old")
    )

    assert raw.startswith(b"HTTP/1.1 302 Found\r\nLocation: /new\r\n")
    assert raw.count(b"HTTP/1.1 ") == 2
    assert raw.endswith(b"\r\n\r\nmoved")
    assert info.redirect_count == 1
    assert info.effective_url == "http://example.com/new"

    by_length = parse_response(raw, info.header_size)
    by_pattern = parse_response(raw)
    assert by_length.status_code == by_pattern.status_code == 200
    assert by_length.body == by_pattern.body == "moved"
    assert dict(by_length.headers) == dict(by_pattern.headers)


def test_redirects_are_not_followed_when_disabled():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "/new"})

    options = TransportOptions(follow_location=False)
    raw, info = create_transport(handler).execute(
        Request("GET", "http://example.com/old", options=options)
    )

    assert info.status_code == 302
    assert info.redirect_count == 0
    assert raw.count(b"HTTP/1.1 ") == 1


def test_request_is_sent_as_configured():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201)

    options = TransportOptions(user_agent="agent/1.0", timeout=5, connect_timeout=3)
    request = Request.build(
        "PUT",
        "example.com/items/1",
        {"name": "x"},
        headers={"X-Token": "secret"},
        options=options,
    )
    create_transport(handler).execute(request)

    (sent,) = seen
    assert sent.method == "PUT"
    assert str(sent.url) == "http://example.com/items/1"
    assert sent.content == b"name=x"
    assert sent.headers["User-Agent"] == "agent/1.0"
    assert sent.headers["X-Token"] == "secret"
    assert sent.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert sent.extensions["timeout"] == {
        "connect": 3.0,
        "read": 5.0,
        "write": 5.0,
        "pool": 5.0,
    }


def test_head_request_has_headers_only():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "HEAD"
        return httpx.Response(200, headers={"Content-Length": "1234"})

    raw, info = create_transport(handler).execute(
        Request.build("HEAD", "http://example.com/file")
    )

    assert raw.endswith(b"Content-Length: 1234\r\n\r\n")
    assert info.header_size == len(raw)


def _raise(exc_factory):
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return handler


def _dns_failure(request):
    try:
        raise gaierror(-2, "Name or service not known")
    except gaierror as ex:
        raise httpx.ConnectError("[Errno -2] Name or service not known") from ex


def _certificate_failure(request):
    try:
        raise ssl.SSLCertVerificationError("certificate verify failed")
    except ssl.SSLError as ex:
        raise httpx.ConnectError("certificate verify failed") from ex


@mark.parametrize(
    ("handler", "code"),
    [
        (_raise(lambda r: httpx.ConnectTimeout("timed out")), 28),
        (_raise(lambda r: httpx.ReadTimeout("timed out")), 28),
        (_raise(lambda r: httpx.ConnectError("refused")), 7),
        (_raise(lambda r: httpx.ProxyError("bad proxy")), 5),
        (_raise(lambda r: httpx.UnsupportedProtocol("gopher")), 1),
        (_raise(lambda r: httpx.RemoteProtocolError("closed")), 52),
        (_raise(lambda r: httpx.ReadError("reset")), 56),
        (_raise(lambda r: httpx.WriteError("broken pipe")), 55),
        (_dns_failure, 6),
        (_certificate_failure, 60),
    ],
)
def test_transport_errors_are_reported(handler, code):
    raw, info = create_transport(handler).execute(Request("GET", "http://example.com"))

    assert raw == b""
    assert info.failed
    assert info.error_code == code
    assert info.error_message == describe_error_code(code)
    assert isinstance(info.exception, httpx.HTTPError)


def test_too_many_redirects_are_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "/loop"})

    options = TransportOptions(max_redirs=3)
    raw, info = create_transport(handler).execute(
        Request("GET", "http://example.com/loop", options=options)
    )

    assert raw == b""
    assert info.error_code == 47


def test_describe_error_code():
    assert describe_error_code(6) == "Could not resolve host"
    assert describe_error_code(28) == "Timeout was reached"
    assert describe_error_code(9999) == "Unknown error 9999"


def test_ssl_context():
    create_ssl_context = HttpxTransport._create_ssl_context

    assert create_ssl_context(TransportOptions(ssl_verify_peer=False)) is False

    context = create_ssl_context(TransportOptions())
    assert isinstance(context, ssl.SSLContext)
    assert context.check_hostname
    assert context.verify_mode == ssl.CERT_REQUIRED

    context = create_ssl_context(TransportOptions(ssl_verify_host=False))
    assert not context.check_hostname
    assert context.verify_mode == ssl.CERT_REQUIRED


def _dripping(delay: float, count: int):
    def handler(request: httpx.Request) -> httpx.Response:
        def drip():
            for _ in range(count):
                sleep(delay)
                yield b"x"

        return httpx.Response(200, content=drip())

    return handler


def test_timeout_covers_the_whole_transfer():
    options = TransportOptions(timeout=0.2)
    raw, info = create_transport(_dripping(0.05, 20)).execute(
        Request("GET", "http://example.com/slow", options=options)
    )

    assert raw == b""
    assert info.error_code == 28
    assert isinstance(info.exception, httpx.TimeoutException)
    assert info.total_time < 0.9


def test_timeout_covers_the_whole_redirect_chain():
    def handler(request: httpx.Request) -> httpx.Response:
        sleep(0.05)
        return httpx.Response(302, headers={"Location": "/again"})

    options = TransportOptions(timeout=0.2)
    raw, info = create_transport(handler).execute(
        Request("GET", "http://example.com/", options=options)
    )

    assert raw == b""
    assert info.error_code == 28


def test_zero_timeout_means_no_limit():
    options = TransportOptions(timeout=0, connect_timeout=0)
    raw, info = create_transport(_dripping(0.01, 5)).execute(
        Request("GET", "http://example.com/slow", options=options)
    )

    assert info.error_code == 0
    assert raw.endswith(b"\r\n\r\nxxxxx")


def test_missing_ca_bundle_is_reported():
    options = TransportOptions(ca_info="/nonexistent/ca-bundle.pem")
    raw, info = HttpxTransport().execute(
        Request("GET", "https://example.com/", options=options)
    )

    assert raw == b""
    assert info.error_code == 77
    assert info.error_message == describe_error_code(77)
    assert isinstance(info.exception, OSError)


def test_header_values_are_sent_as_utf8():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    request = Request.build("GET", "http://example.com/", headers={"X-Name": "Zoë ☃"})
    raw, info = create_transport(handler).execute(request)

    assert info.error_code == 0
    (sent,) = seen
    assert (b"X-Name", "Zoë ☃".encode("utf-8")) in sent.headers.raw
