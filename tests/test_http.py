"""Tests for the HTTP source, HTTPRequest, and the http library."""

from __future__ import annotations

import json
import threading

import httpx
import pytest

from typed_host import Format, FormatSelector, HostConfig, World
from typed_host.errors import FormatUnsupportedError, SourceFailureError, TypeMismatchError
from typed_host.http import HTTPHeaders, HTTPOptions, HTTPRequest, HTTPResponse
from typed_host.types import NIL, BinaryString, Dictionary, Double, Int, String

URL = "https://example.test/data"


@pytest.fixture
def make_world():
    """Create worlds whose HTTP client answers through a handler."""
    worlds = []

    def make(handler):
        w = World.default(HostConfig(http_transport=httpx.MockTransport(handler)))
        worlds.append(w)
        return w

    yield make
    for w in worlds:
        w.close()


@pytest.fixture
def gate():
    """An event that blocking handlers wait on; always released on teardown."""
    event = threading.Event()
    yield event
    event.set()


def echo(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "method": request.method,
            "body": request.content.decode(),
            "type": request.headers.get("content-type"),
        },
    )


class TestHTTPSource:
    """Tests for HTTPSource."""

    def test_read(self, make_world):
        """Test reading performs a GET and returns the body."""
        world = make_world(lambda request: httpx.Response(200, content=b"payload"))
        assert world.source("http").read(URL) == b"payload"

    def test_write(self, make_world):
        """Test writing performs a POST with the data as body."""
        seen = []

        def handler(request):
            seen.append((request.method, request.content))
            return httpx.Response(204)

        world = make_world(handler)
        world.source("http").write(URL, b"data")
        assert seen == [("POST", b"data")]

    def test_error_status(self, make_world):
        """Test a non-2xx status is a source failure naming the status."""
        world = make_world(lambda request: httpx.Response(404))
        with pytest.raises(SourceFailureError, match=f"GET {URL}: 404 Not Found"):
            world.source("http").read(URL)

    def test_transport_error(self, make_world):
        """Test transport errors are source failures."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        world = make_world(handler)
        with pytest.raises(SourceFailureError, match="connection refused"):
            world.source("http").read(URL)

    def test_user_agent(self, make_world):
        """Test requests carry the configured user agent."""
        agents = []

        def handler(request):
            agents.append(request.headers["user-agent"])
            return httpx.Response(200)

        make_world(handler).source("http").read(URL)
        assert agents == ["typed_host/0.1.0"]


class TestHTTPRequest:
    """Tests for HTTPRequest."""

    def test_resolve(self, make_world):
        """Test a response without a response format has a binary body."""
        world = make_world(lambda request: httpx.Response(200, content=b"raw"))
        response = HTTPRequest.begin(world, HTTPOptions(url=URL)).resolve(timeout=5)
        assert response.success
        assert response.status_code == 200
        assert response.status_message == "200 OK"
        assert response.body == BinaryString(b"raw")

    def test_formats(self, make_world):
        """Test the body is encoded and decoded with the selected formats."""
        world = make_world(echo)
        options = HTTPOptions(
            url=URL,
            method="POST",
            request_format=FormatSelector("json", Dictionary({"Indent": String("")})),
            response_format=FormatSelector("json"),
            body=Dictionary({"a": Int(1)}),
        )
        body = HTTPRequest.begin(world, options).resolve(timeout=5).body
        assert body["method"] == String("POST")
        assert body["body"] == String('{"a":1}')
        assert body["type"] == String("application/json")

    def test_explicit_content_type(self, make_world):
        """Test an explicit Content-Type header is kept."""
        world = make_world(echo)
        options = HTTPOptions(
            url=URL,
            method="POST",
            request_format=FormatSelector("json"),
            response_format=FormatSelector("json"),
            headers=HTTPHeaders({"content-type": ["application/vnd.test+json"]}),
            body=String("x"),
        )
        body = HTTPRequest.begin(world, options).resolve(timeout=5).body
        assert body["type"] == String("application/vnd.test+json")

    def test_string_body_without_format(self, make_world):
        """Test string-like bodies are sent as is."""
        world = make_world(echo)
        options = HTTPOptions(
            url=URL, method="PUT", response_format=FormatSelector("json"), body=String("text")
        )
        body = HTTPRequest.begin(world, options).resolve(timeout=5).body
        assert body["body"] == String("text")
        assert body["type"] is NIL

    def test_table_body_needs_format(self, make_world):
        """Test a table body without a request format fails immediately."""
        world = make_world(echo)
        options = HTTPOptions(url=URL, method="POST", body=Dictionary({"a": Int(1)}))
        with pytest.raises(SourceFailureError, match="requires a RequestFormat"):
            HTTPRequest.begin(world, options)

    def test_error_status_resolves(self, make_world):
        """Test error statuses are responses, not failures."""
        world = make_world(lambda request: httpx.Response(500))
        response = HTTPRequest.begin(world, HTTPOptions(url=URL)).resolve(timeout=5)
        assert not response.success
        assert response.status_code == 500
        assert response.status_message == "500 Internal Server Error"

    def test_transport_error(self, make_world):
        """Test transport errors are raised by resolve."""

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        world = make_world(handler)
        request = HTTPRequest.begin(world, HTTPOptions(url=URL))
        with pytest.raises(SourceFailureError, match=f"GET {URL}: unreachable"):
            request.resolve(timeout=5)

    def test_decode_error(self, make_world):
        """Test a body the response format cannot decode fails resolve."""
        world = make_world(lambda request: httpx.Response(200, content=b"{"))
        options = HTTPOptions(url=URL, response_format=FormatSelector("json"))
        with pytest.raises(FormatUnsupportedError, match="decode json"):
            HTTPRequest.begin(world, options).resolve(timeout=5)

    def test_cancel(self, make_world, gate):
        """Test canceling an in-flight request fails resolve."""

        def handler(request):
            gate.wait(5)
            return httpx.Response(200)

        world = make_world(handler)
        request = HTTPRequest.begin(world, HTTPOptions(url=URL))
        request.cancel()
        request.cancel()
        assert request.canceled
        with pytest.raises(SourceFailureError, match="request canceled"):
            request.resolve(timeout=5)
        gate.set()

    def test_cancel_after_completion(self, make_world):
        """Test canceling a completed request keeps its response."""
        world = make_world(lambda request: httpx.Response(200, content=b"done"))
        request = HTTPRequest.begin(world, HTTPOptions(url=URL))
        response = request.resolve(timeout=5)
        request.cancel()
        assert not request.canceled
        assert request.finished
        assert request.resolve(timeout=5) is response

    def test_timeout(self, make_world, gate):
        """Test resolve gives up after its timeout."""

        def handler(request):
            gate.wait(5)
            return httpx.Response(200)

        world = make_world(handler)
        request = HTTPRequest.begin(world, HTTPOptions(url=URL))
        with pytest.raises(SourceFailureError, match="request timed out"):
            request.resolve(timeout=0.01)
        request.cancel()
        gate.set()

    def test_decoder_failure(self):
        """Test an unexpected decoder failure is delivered through resolve."""

        class Broken(Format):
            name = "broken"

            def decode(self, world, options, data):
                raise RuntimeError("decoder exploded")

        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        world = World(HostConfig(http_transport=transport))
        world.register_format(Broken())
        world.freeze()
        try:
            options = HTTPOptions(url=URL, response_format=FormatSelector("broken"))
            request = HTTPRequest.begin(world, options)
            with pytest.raises(SourceFailureError, match="decoder exploded"):
                request.resolve(timeout=5)
            assert request.finished
        finally:
            world.close()

    def test_number_out_of_range(self, make_world):
        """Test a JSON number too large for a double fails resolve."""
        world = make_world(lambda request: httpx.Response(200, content=b"1" + b"0" * 400))
        options = HTTPOptions(url=URL, response_format=FormatSelector("json"))
        with pytest.raises(FormatUnsupportedError, match="number out of range"):
            HTTPRequest.begin(world, options).resolve(timeout=5)

    def test_cancel_discards_late_response(self, make_world, gate):
        """Test a response arriving after cancel is dropped."""

        def handler(request):
            gate.wait(5)
            return httpx.Response(200, content=b"late")

        world = make_world(handler)
        request = HTTPRequest.begin(world, HTTPOptions(url=URL))
        request.cancel()
        gate.set()
        request._thread.join(5)
        assert not request.finished
        with pytest.raises(SourceFailureError, match="request canceled"):
            request.resolve(timeout=5)


class TestHeaders:
    """Tests for HTTPHeaders."""

    def test_from_httpx(self):
        """Test repeated headers are collected into lists."""
        headers = HTTPHeaders.from_httpx(httpx.Headers([("Accept", "a"), ("Accept", "b")]))
        assert headers == {"accept": ["a", "b"]}

    def test_items_flat(self):
        """Test each value becomes its own pair."""
        headers = HTTPHeaders({"X-A": ["1", "2"], "X-B": ["3"]})
        assert headers.items_flat() == [("X-A", "1"), ("X-A", "2"), ("X-B", "3")]


class TestHTTPLibrary:
    """Tests for the http script library."""

    def test_request(self, make_world):
        """Test a request round trip through script values."""
        world = make_world(echo)
        env = world.state().environment()
        request = env["http"]["request"](
            {
                "URL": URL,
                "Method": "post",
                "RequestFormat": {"Format": "json", "Indent": ""},
                "ResponseFormat": "json",
                "Body": {"a": 1},
            }
        )
        assert request.type_name == "HTTPRequest"
        response = request.call("Resolve")
        assert response["Success"] is True
        assert response["StatusCode"] == 200
        assert response["StatusMessage"] == "200 OK"
        assert response["Headers"]["content-type"] == ["application/json"]
        assert response["Body"] == {
            "method": "POST",
            "body": '{"a":1}',
            "type": "application/json",
        }

    def test_headers(self, make_world):
        """Test header tables accept strings and lists of strings."""
        seen = []

        def handler(request):
            seen.append(request.headers.get_list("x-tag"))
            seen.append(request.headers.get("x-one"))
            return httpx.Response(200)

        env = make_world(handler).state().environment()
        request = env["http"]["request"](
            {"URL": URL, "Headers": {"X-Tag": ["a", "b"], "X-One": "1"}}
        )
        request.call("Resolve")
        assert seen == [["a", "b"], "1"]

    def test_binary_body(self, make_world):
        """Test a response without a format pushes a byte string."""
        env = make_world(lambda request: httpx.Response(200, content=b"\x00")).state().environment()
        response = env["http"]["request"]({"URL": URL}).call("Resolve")
        assert response["Body"] == b"\x00"

    def test_cancel(self, make_world, gate):
        """Test Cancel through the script interface."""

        def handler(request):
            gate.wait(5)
            return httpx.Response(200)

        env = make_world(handler).state().environment()
        request = env["http"]["request"]({"URL": URL})
        request.call("Cancel")
        with pytest.raises(SourceFailureError, match="request canceled"):
            request.call("Resolve")
        gate.set()

    def test_missing_url(self, make_world):
        """Test the URL field is required."""
        env = make_world(echo).state().environment()
        with pytest.raises(TypeMismatchError, match="field URL: string expected, got nil"):
            env["http"]["request"]({})

    def test_bad_header(self, make_world):
        """Test header values must be strings."""
        env = make_world(echo).state().environment()
        with pytest.raises(TypeMismatchError, match="string or table of strings expected"):
            env["http"]["request"]({"URL": URL, "Headers": {"X": 5}})

    def test_options_table(self, make_world):
        """Test options and responses push as tables."""
        state = make_world(echo).state()
        table = state.push(HTTPOptions(url=URL, response_format=FormatSelector("txt")))
        assert table == {
            "URL": URL,
            "Method": "GET",
            "ResponseFormat": {"Format": "txt"},
            "Headers": {},
        }
        response = state.push(HTTPResponse(True, 200, "200 OK", body=Double(1.5)))
        assert response["Body"] == 1.5
        assert state.pull(response, "HTTPResponse").body == Double(1.5)

    def test_response_json(self, make_world):
        """Test the echo helper reports what was sent."""
        world = make_world(echo)
        body = world.source("http").read(URL)
        assert json.loads(body)["method"] == "GET"
