"""
End-to-end tests: a real server on an ephemeral port, driven by http.client.
"""

import gzip
import http.client
import socket
from dataclasses import replace

import pytest

from dirserve.config import BasicAuthCredential
from dirserve.pipeline import build_handler
from dirserve.server import start_server, stop_server


BIG_TEXT = "".join(f"line {i}: the quick brown fox\n" for i in range(2000))


@pytest.fixture
def serve(served_tree):
    """Start a server for a config; stopped when the test ends."""
    handles = []

    def _serve(config):
        handle = start_server(build_handler(config, cwd=str(served_tree)), config)
        handles.append(handle)
        return handle

    yield _serve

    for handle in handles:
        stop_server(handle, timeout=5.0)


@pytest.fixture
def server(serve, config):
    return serve(config)


@pytest.fixture
def client(server):
    conn = http.client.HTTPConnection("127.0.0.1", server.port, timeout=5)
    yield conn
    conn.close()


def raw_exchange(port: int, data: bytes) -> bytes:
    """Send raw bytes and read until the server closes."""
    with socket.create_connection(("127.0.0.1", port), timeout=5) as sock:
        sock.sendall(data)
        chunks = []
        while True:
            chunk = sock.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


class TestServing:
    """Plain GETs over a real socket."""

    def test_text_listing(self, client):
        client.request("GET", "/")
        response = client.getresponse()

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/plain; charset=UTF-8"
        assert response.read() == b"bar.html\r\ndocs\r\nfoo.txt\r\n"

    def test_html_listing(self, client):
        client.request("GET", "/docs/", headers={"Accept": "text/html"})
        response = client.getresponse()
        body = response.read().decode("utf-8")

        assert response.status == 200
        assert response.getheader("Content-Type").startswith("text/html")
        assert '<a href="index.html">index.html</a>' in body

    def test_file(self, client):
        client.request("GET", "/foo.txt")
        response = client.getresponse()

        assert response.status == 200
        assert response.read() == b"foo\n"
        assert response.getheader("Content-Type") == "text/plain; charset=utf-8"
        assert response.getheader("Content-Length") == "4"
        assert response.getheader("Server") == "dirserve"
        assert response.getheader("Date") is not None
        assert response.getheader("Last-Modified") == "Sun, 01 Mar 2026 12:00:00 GMT"

    def test_keep_alive_reuses_connection(self, client):
        client.request("GET", "/foo.txt")
        first = client.getresponse()
        first.read()
        client.request("GET", "/bar.html")
        second = client.getresponse()

        assert first.getheader("Connection") == "keep-alive"
        assert second.read() == b"<p>bar</p>\n"

    def test_directory_redirect(self, client):
        client.request("GET", "/docs")
        response = client.getresponse()
        response.read()

        assert response.status == 302
        assert response.getheader("Location") == "/docs/"

    def test_conditional_get(self, client):
        client.request("GET", "/foo.txt", headers={"If-Modified-Since": "Sun, 01 Mar 2026 12:00:00 GMT"})
        response = client.getresponse()

        assert response.status == 304
        assert response.read() == b""


class TestErrors:
    """Error answers close the connection."""

    @pytest.mark.parametrize("path, status", [
        ("/missing.txt", 404),
        ("/.secret", 403),
        ("/docs/../foo.txt", 403),
    ])
    def test_error_status(self, client, path, status):
        client.request("GET", path)
        response = client.getresponse()

        assert response.status == status
        assert response.getheader("Connection") == "close"
        assert response.getheader("Content-Type") == "text/plain; charset=UTF-8"
        assert response.read() == b""

    def test_method_not_allowed(self, client):
        client.request("POST", "/foo.txt", body=b"x")
        response = client.getresponse()
        response.read()

        assert response.status == 405
        assert response.getheader("Allow") == "GET"

    def test_malformed_request(self, server):
        reply = raw_exchange(server.port, b"NONSENSE\r\n\r\n")

        assert reply.startswith(b"HTTP/1.1 400 ")

    def test_basic_auth(self, serve, config):
        config = replace(config, auth=BasicAuthCredential.from_pair("alice", "s3cret"))
        handle = serve(config)
        conn = http.client.HTTPConnection("127.0.0.1", handle.port, timeout=5)
        try:
            conn.request("GET", "/foo.txt")
            denied = conn.getresponse()
            denied.read()
            conn.close()

            conn.request("GET", "/foo.txt", headers={"Authorization": "Basic YWxpY2U6czNjcmV0"})
            allowed = conn.getresponse()

            assert denied.status == 401
            assert denied.getheader("WWW-Authenticate") == 'Basic realm="dirserve"'
            assert allowed.status == 200
            assert allowed.read() == b"foo\n"
        finally:
            conn.close()


class TestCompression:
    """gzip on the wire."""

    def test_file_streamed_chunked(self, served_tree, client):
        (served_tree / "big.txt").write_text(BIG_TEXT)

        client.request("GET", "/big.txt", headers={"Accept-Encoding": "gzip"})
        response = client.getresponse()

        assert response.status == 200
        assert response.getheader("Content-Encoding") == "gzip"
        assert response.getheader("Transfer-Encoding") == "chunked"
        assert response.getheader("Content-Length") is None
        assert gzip.decompress(response.read()) == BIG_TEXT.encode("utf-8")

    def test_http10_close_delimited(self, served_tree, server):
        (served_tree / "big.txt").write_text(BIG_TEXT)

        reply = raw_exchange(
            server.port,
            b"GET /big.txt HTTP/1.0\r\nAccept-Encoding: gzip\r\n\r\n",
        )
        head, _, body = reply.partition(b"\r\n\r\n")

        assert head.startswith(b"HTTP/1.0 200 ") or head.startswith(b"HTTP/1.1 200 ")
        assert b"Connection: close" in head
        assert b"Content-Length" not in head
        assert gzip.decompress(body) == BIG_TEXT.encode("utf-8")

    def test_no_gzip_without_accept_encoding(self, served_tree, client):
        (served_tree / "big.txt").write_text(BIG_TEXT)

        client.request("GET", "/big.txt")
        response = client.getresponse()

        assert response.getheader("Content-Encoding") is None
        assert response.getheader("Content-Length") == str(len(BIG_TEXT))
        assert response.read() == BIG_TEXT.encode("utf-8")


class TestLifecycle:
    def test_stop_is_idempotent(self, serve, config):
        handle = serve(config)

        stop_server(handle, timeout=5.0)
        stop_server(handle, timeout=5.0)

        assert handle.wait(1.0)

    def test_ephemeral_port(self, server):
        assert server.port > 0
        assert server.url == f"http://127.0.0.1:{server.port}"
