from pathlib import Path

import pytest

from jaegerfront.static import StaticFileService, StaticResponse, static_file_service

INDEX = b"<html>ui</html>"


@pytest.fixture
def site(tmp_path: Path) -> Path:
    (tmp_path / "index.html").write_bytes(INDEX)
    (tmp_path / "style.css").write_bytes(b"body{}")
    (tmp_path / "blob.zzqunknown").write_bytes(b"\x00\x01")
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "app.css").write_bytes(b"a{}")
    return tmp_path


@pytest.fixture
def bare(tmp_path: Path) -> Path:
    (tmp_path / "style.css").write_bytes(b"body{}")
    return tmp_path


def test_existing_file_is_served_with_its_type(site):
    result = StaticFileService(site).handle_request("/style.css")
    assert result == StaticResponse(200, "text/css", b"body{}")


def test_nested_file_is_served(site):
    result = static_file_service(site).handle_request("/assets/app.css")
    assert result.status == 200
    assert result.body == b"a{}"


def test_leading_slashes_are_stripped(site):
    result = StaticFileService(site).handle_request("///style.css")
    assert result.body == b"body{}"


def test_unknown_extension_is_octet_stream(site):
    result = StaticFileService(site).handle_request("/blob.zzqunknown")
    assert result.content_type == "application/octet-stream"
    assert result.body == b"\x00\x01"


@pytest.mark.parametrize("path", ["/", "", "/search", "/trace/abc123", "/assets"])
def test_routes_fall_back_to_index(site, path):
    result = StaticFileService(site).handle_request(path)
    assert result.status == 200
    assert result.content_type == "text/html"
    assert result.body == INDEX


def test_missing_file_with_extension_serves_index(site):
    result = StaticFileService(site).handle_request("/missing.js")
    assert result.body == INDEX


def test_missing_file_without_index_is_404(bare):
    result = StaticFileService(bare).handle_request("/missing.js")
    assert result == StaticResponse(404, "text/plain", b"File not found")


def test_route_without_index_is_404(bare):
    result = StaticFileService(bare).handle_request("/search")
    assert result.status == 404
    assert result.body == b"File not found"


def test_root_without_index_is_404(bare):
    result = StaticFileService(bare).handle_request("/")
    assert result.status == 404


def test_paths_outside_root_are_not_served(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (tmp_path / "outside.txt").write_bytes(b"hidden")
    result = StaticFileService(root).handle_request("/../outside.txt")
    assert result.status == 404
    assert result.body != b"hidden"