"""
Unit tests for gzip compression.
"""

import gzip

import pytest

from dirserve.http.response import BytesBody, FileBody, HTTPResponse, file_response, text_response
from dirserve.http.status_codes import HTTPStatus
from dirserve.middleware.compression import CompressionMiddleware


LISTING = "\r\n".join(f"file-{i:04d}.txt" for i in range(200)) + "\r\n"


def run(request, response: HTTPResponse, **kwargs) -> HTTPResponse:
    return CompressionMiddleware(**kwargs)(request, lambda req: response)


class TestAcceptsGzip:
    @pytest.mark.parametrize("header, expected", [
        ("gzip", True),
        ("deflate, gzip;q=0.5", True),
        ("GZIP", True),
        ("gzip;q=0", False),
        ("deflate, br", False),
        ("", False),
    ])
    def test_accept_encoding(self, header: str, expected: bool):
        assert CompressionMiddleware._accepts_gzip(header) is expected


class TestCompressionMiddleware:
    """Tests for CompressionMiddleware."""

    def test_listing_compressed_in_memory(self, make_request):
        request = make_request("/", headers={"Accept-Encoding": "gzip"})
        response = run(request, text_response(LISTING, "text/plain; charset=UTF-8"))

        assert response.get_header("Content-Encoding") == "gzip"
        assert response.get_header("Vary") == "Accept-Encoding"
        assert isinstance(response.body, BytesBody)
        assert gzip.decompress(response.body.data) == LISTING.encode("utf-8")
        assert response.compress is False

    def test_file_marked_for_streaming(self, make_request):
        request = make_request("/a.txt", headers={"Accept-Encoding": "gzip"})
        original = file_response("/srv/a.txt", 10_000, 0)
        original.set_header("Content-Type", "text/plain; charset=utf-8")

        response = run(request, original)

        assert response.compress is True
        assert isinstance(response.body, FileBody)
        assert response.get_header("Content-Encoding") == "gzip"

    def test_client_without_gzip(self, make_request):
        response = run(make_request("/"), text_response(LISTING, "text/plain"))

        assert not response.has_header("Content-Encoding")
        assert response.body.data == LISTING.encode("utf-8")

    def test_binary_type_untouched(self, make_request):
        request = make_request("/a.png", headers={"Accept-Encoding": "gzip"})
        original = file_response("/srv/a.png", 10_000, 0)
        original.set_header("Content-Type", "image/png")

        response = run(request, original)

        assert response.compress is False
        assert not response.has_header("Content-Encoding")

    def test_small_body_untouched(self, make_request):
        request = make_request("/", headers={"Accept-Encoding": "gzip"})

        response = run(request, text_response("a\r\n", "text/plain"))

        assert not response.has_header("Content-Encoding")

    def test_only_200(self, make_request):
        request = make_request("/", headers={"Accept-Encoding": "gzip"})
        original = text_response(LISTING, "text/plain")
        original.status = HTTPStatus.NOT_FOUND

        assert not run(request, original).has_header("Content-Encoding")

    def test_vary_appended(self, make_request):
        request = make_request("/", headers={"Accept-Encoding": "gzip"})
        original = text_response(LISTING, "text/plain")
        original.set_header("Vary", "Origin")

        assert run(request, original).get_header("Vary") == "Origin, Accept-Encoding"

    def test_same_listing_same_bytes(self, make_request, monkeypatch):
        """Two GETs seconds apart yield identical compressed bodies."""
        clock = iter([1_000_000_000.0, 1_000_000_005.0])
        monkeypatch.setattr(gzip.time, "time", lambda: next(clock, 1_000_000_010.0))
        request = make_request("/", headers={"Accept-Encoding": "gzip"})

        first = run(request, text_response(LISTING, "text/plain; charset=UTF-8"))
        second = run(request, text_response(LISTING, "text/plain; charset=UTF-8"))

        assert first.body.data == second.body.data
        assert first.body.data[4:8] == b"\x00\x00\x00\x00"
