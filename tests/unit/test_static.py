"""
Unit tests for static file serving and MIME detection.
"""

from pathlib import Path

import pytest

from webserver.handlers.static import StaticFileHandler, load_file
from webserver.http.mime_types import get_mime_type
from webserver.http.request import HTTPRequest
from webserver.http.response import HTTPResponse


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    (tmp_path / "index.html").write_text("<h1>Index</h1>")
    (tmp_path / "app.js").write_text("console.log(1);")
    (tmp_path / "notes").write_bytes(b"\x00\x01plain")
    return tmp_path


class TestLoadFile:
    """Tests for load_file()."""

    def test_existing_file(self, public_dir: Path):
        assert load_file(public_dir / "index.html") == (b"<h1>Index</h1>", "text/html")

    def test_missing_file(self, public_dir: Path):
        assert load_file(public_dir / "missing.html") is None

    def test_directory_is_not_a_file(self, public_dir: Path):
        assert load_file(public_dir) is None

    def test_unknown_extension_is_text_plain(self, public_dir: Path):
        assert load_file(public_dir / "notes") == (b"\x00\x01plain", "text/plain")


class TestStaticFileHandler:
    """Tests for StaticFileHandler."""

    def test_serves_file(self, public_dir: Path):
        response = HTTPResponse()
        StaticFileHandler(public_dir / "app.js").handle(HTTPRequest(method="GET", path="/app.js"), response)

        assert response.status_code == 200
        assert response.body == b"console.log(1);"
        assert response.headers["Content-Type"] == "application/javascript"
        assert response.headers["Content-Length"] == "15"

    def test_missing_file_is_404(self, public_dir: Path):
        response = HTTPResponse()
        StaticFileHandler(public_dir / "gone.html").handle(HTTPRequest(method="GET", path="/gone.html"), response)

        assert response.status_line == "HTTP/1.1 404 Not Found"
        assert response.body == b"<html><body><h1>404 Not Found</h1></body></html>"

    def test_reads_file_per_request(self, public_dir: Path):
        """Test edits on disk show up without re-registering."""
        handler = StaticFileHandler(public_dir / "index.html")
        (public_dir / "index.html").write_text("<h1>Changed</h1>")

        response = HTTPResponse()
        handler.handle(HTTPRequest(method="GET", path="/index.html"), response)

        assert response.body == b"<h1>Changed</h1>"


class TestMimeTypes:
    """Tests for get_mime_type()."""

    @pytest.mark.parametrize("path, expected", [
        ("index.html", "text/html"),
        ("INDEX.HTM", "text/html"),
        ("style.css", "text/css"),
        ("app.js", "application/javascript"),
        ("data.json", "application/json"),
        ("logo.png", "image/png"),
        ("photo.JPEG", "image/jpeg"),
        ("README", "text/plain"),
        ("archive.unknownext", "text/plain"),
    ])
    def test_lookup(self, path: str, expected: str):
        assert get_mime_type(path) == expected

    def test_custom_default(self):
        assert get_mime_type("blob.bin", default="application/octet-stream") == "application/octet-stream"
