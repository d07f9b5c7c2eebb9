"""test suite for the http registry client."""
import json
import httpx
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fdpkg.domain.errors import HttpStatusError, ParseError, RegistryConnectionError, StorageError
from fdpkg.registry.remote import HttpRegistry
from fdpkg.registry.session import Session

BASE_URL = "https://registry.test"

PACKAGE_DOC = {
    "id": "7",
    "name": "foo",
    "description": "demo",
    "version": "1.2.0",
    "dependencies": [],
    "files": ["foo.bin"],
    "platform": "any",
}


class FakeRegistryServer:
    """records requests and answers from a route table."""

    def __init__(self):
        self.requests = []
        self.routes = {}

    def route(self, method: str, path: str, response):
        self.routes[(method, path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, text="not found")
        if callable(response):
            return response(request)
        return response


@pytest.fixture
def server():
    return FakeRegistryServer()


@pytest.fixture
def registry(server, tmp_path):
    client = HttpRegistry(BASE_URL, cookie_file=tmp_path / "cookies.txt", transport=httpx.MockTransport(server))
    yield client
    client.close()


class TestLogin:
    def test_login_stores_raw_body_as_token(self, registry, server):
        server.route("POST", "/login", httpx.Response(200, text='{"not": "parsed"}'))

        token = registry.login("alice", "secret")

        assert token == '{"not": "parsed"}'
        assert registry.session.token == token
        sent = server.requests[0]
        assert json.loads(sent.content) == {"username": "alice", "password": "secret"}
        assert sent.headers["content-type"] == "application/json"

    def test_failed_login_leaves_session_empty(self, registry, server):
        server.route("POST", "/login", httpx.Response(401, text="nope"))

        with pytest.raises(HttpStatusError) as exc_info:
            registry.login("alice", "wrong")

        assert exc_info.value.status_code == 401
        assert registry.session.token == ""
        assert not registry.session.is_authenticated

    def test_failed_login_clears_previous_token(self, registry, server):
        registry.session.token = "stale"
        server.route("POST", "/login", httpx.Response(500))

        with pytest.raises(HttpStatusError):
            registry.login("alice", "secret")
        assert registry.session.token == ""

    def test_connection_error(self, tmp_path):
        def refuse(request):
            raise httpx.ConnectError("connection refused")

        with HttpRegistry(BASE_URL, transport=httpx.MockTransport(refuse)) as registry:
            with pytest.raises(RegistryConnectionError):
                registry.login("alice", "secret")
            assert registry.session.token == ""

    def test_token_sent_on_later_requests(self, registry, server):
        server.route("POST", "/login", httpx.Response(200, text="tok123"))
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, json=PACKAGE_DOC))

        registry.login("alice", "secret")
        registry.fetch_metadata("foo", "1.2.0")

        assert server.requests[-1].headers["authorization"] == "Bearer tok123"

    def test_sessions_are_per_client(self, server):
        server.route("POST", "/login", httpx.Response(200, text="tok123"))
        transport = httpx.MockTransport(server)

        with HttpRegistry(BASE_URL, transport=transport) as first, HttpRegistry(BASE_URL, transport=transport) as second:
            first.login("alice", "secret")
            assert first.session.is_authenticated
            assert not second.session.is_authenticated

    def test_shared_session_object(self, server):
        server.route("POST", "/login", httpx.Response(200, text="tok123"))
        session = Session()

        with HttpRegistry(BASE_URL, session=session, transport=httpx.MockTransport(server)) as registry:
            registry.login("alice", "secret")

        assert session.token == "tok123"

    def test_cookies_persist_across_clients(self, server, tmp_path):
        cookie_file = tmp_path / "cookies.txt"
        server.route("POST", "/login", httpx.Response(200, text="tok", headers={"set-cookie": "sid=abc123; Path=/"}))
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, json=PACKAGE_DOC))
        transport = httpx.MockTransport(server)

        with HttpRegistry(BASE_URL, cookie_file=cookie_file, transport=transport) as registry:
            registry.login("alice", "secret")

        assert "abc123" in cookie_file.read_text()

        with HttpRegistry(BASE_URL, cookie_file=cookie_file, transport=transport) as registry:
            registry.fetch_metadata("foo", "1.2.0")

        assert "sid=abc123" in server.requests[-1].headers["cookie"]

    def test_unreadable_cookie_file_is_ignored(self, server, tmp_path):
        cookie_file = tmp_path / "cookies.txt"
        cookie_file.write_text("garbage that is not a cookie jar\n")
        server.route("POST", "/login", httpx.Response(200, text="tok"))

        with HttpRegistry(BASE_URL, cookie_file=cookie_file, transport=httpx.MockTransport(server)) as registry:
            assert registry.login("alice", "secret") == "tok"


class TestFetchMetadata:
    def test_fetch_metadata(self, registry, server):
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, json=PACKAGE_DOC))

        info = registry.fetch_metadata("foo", "1.2.0")

        assert info.name == "foo"
        assert info.version == "1.2.0"
        assert info.files == ["foo.bin"]

    def test_follows_redirects(self, registry, server):
        server.route("GET", "/packages/foo/latest.json", httpx.Response(302, headers={"location": "/packages/foo/1.2.0.json"}))
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, json=PACKAGE_DOC))

        info = registry.fetch_metadata("foo", "latest")

        assert info.version == "1.2.0"
        assert [r.url.path for r in server.requests] == ["/packages/foo/latest.json", "/packages/foo/1.2.0.json"]

    def test_missing_version_is_parse_error(self, registry, server):
        doc = dict(PACKAGE_DOC)
        del doc["version"]
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, json=doc))

        with pytest.raises(ParseError, match="version"):
            registry.fetch_metadata("foo", "1.2.0")

    def test_malformed_body_is_parse_error(self, registry, server):
        server.route("GET", "/packages/foo/1.2.0.json", httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ParseError):
            registry.fetch_metadata("foo", "1.2.0")

    def test_not_found(self, registry):
        with pytest.raises(HttpStatusError) as exc_info:
            registry.fetch_metadata("missing", "1.0")
        assert exc_info.value.status_code == 404
        assert exc_info.value.url.endswith("/packages/missing/1.0.json")

    def test_names_are_quoted(self, registry, server):
        with pytest.raises(HttpStatusError):
            registry.fetch_metadata("a/b", "1.0")
        assert server.requests[0].url.raw_path == b"/packages/a%2Fb/1.0.json"


class TestFetchFile:
    def test_streams_to_destination_with_progress(self, registry, server, tmp_path):
        payload = b"x" * 5000
        server.route("GET", "/packages/foo/1.2.0/foo.bin", httpx.Response(200, content=payload))
        destination = tmp_path / "foo.bin"
        ticks = []

        result = registry.fetch_file("foo", "1.2.0", "foo.bin", destination, progress=lambda d, t: ticks.append((d, t)))

        assert result == destination
        assert destination.read_bytes() == payload
        assert ticks
        assert ticks[-1] == (5000, 5000)

    def test_unknown_length_reports_zero_total(self, registry, server, tmp_path):
        server.route("GET", "/packages/foo/1.2.0/foo.bin", httpx.Response(200, content=iter([b"ab", b"cd"])))
        destination = tmp_path / "foo.bin"
        ticks = []

        registry.fetch_file("foo", "1.2.0", "foo.bin", destination, progress=lambda d, t: ticks.append((d, t)))

        assert destination.read_bytes() == b"abcd"
        assert ticks
        assert all(total == 0 for _, total in ticks)

    def test_nested_file_path(self, registry, server, tmp_path):
        server.route("GET", "/packages/foo/1.2.0/share/doc/readme.txt", httpx.Response(200, content=b"hi"))

        registry.fetch_file("foo", "1.2.0", "share/doc/readme.txt", tmp_path / "readme.txt")

        assert (tmp_path / "readme.txt").read_bytes() == b"hi"

    def test_unwritable_destination_fails_before_request(self, registry, server, tmp_path):
        destination = tmp_path / "missing-dir" / "foo.bin"

        with pytest.raises(StorageError):
            registry.fetch_file("foo", "1.2.0", "foo.bin", destination)

        assert server.requests == []
        assert not destination.exists()

    def test_http_error(self, registry, tmp_path):
        with pytest.raises(HttpStatusError):
            registry.fetch_file("foo", "1.2.0", "missing.bin", tmp_path / "out.bin")

    def test_partial_file_left_on_transport_error(self, registry, server, tmp_path):
        def broken_stream():
            yield b"partial"
            raise httpx.ReadError("connection reset")

        server.route("GET", "/packages/foo/1.2.0/foo.bin", lambda request: httpx.Response(200, content=broken_stream()))
        destination = tmp_path / "foo.bin"

        with pytest.raises(RegistryConnectionError):
            registry.fetch_file("foo", "1.2.0", "foo.bin", destination)

        assert destination.read_bytes() == b"partial"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
