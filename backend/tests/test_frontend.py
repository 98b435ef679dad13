"""
Menu Service Backend: Frontend Bundle Tests
===========================================

What:  The catch-all route serves the bundle without shadowing the API.
"""

from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from menu_service.main import create_app
from menu_service.routes.frontend import has_bundle

INDEX_HTML = b"<!doctype html><html><body><div id='root'></div></body></html>"


@pytest.fixture
def build_dir(test_settings):
    root = Path(test_settings.frontend_build_dir)
    (root / "static").mkdir(parents=True)
    (root / "index.html").write_bytes(INDEX_HTML)
    (root / "static" / "app.js").write_text("console.log('menu');")
    return root


@pytest_asyncio.fixture
async def bundle_client(build_dir, test_settings, menu_service):
    app = create_app(test_settings, service=menu_service)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


def test_has_bundle(tmp_path):
    assert has_bundle(str(tmp_path)) is False
    (tmp_path / "index.html").write_text("<html></html>")
    assert has_bundle(str(tmp_path)) is True


@pytest.mark.asyncio
async def test_root_serves_index(bundle_client):
    response = await bundle_client.get("/")
    assert response.status_code == 200
    assert response.content == INDEX_HTML
    assert response.headers["content-type"].startswith("text/html")


@pytest.mark.asyncio
async def test_client_side_route_serves_index(bundle_client):
    response = await bundle_client.get("/items/42/edit")
    assert response.status_code == 200
    assert response.content == INDEX_HTML


@pytest.mark.asyncio
async def test_static_asset_served(bundle_client):
    response = await bundle_client.get("/static/app.js")
    assert response.status_code == 200
    assert b"console.log" in response.content


@pytest.mark.asyncio
async def test_api_routes_not_shadowed(bundle_client):
    assert (await bundle_client.get("/api")).json()["status"] == "OK"
    assert (await bundle_client.get("/menu")).json() == []
    assert (await bundle_client.get("/menu/999")).status_code == 404


@pytest.mark.asyncio
async def test_unusable_path_falls_back_to_index(bundle_client):
    response = await bundle_client.get("/static/app%00.js")
    assert response.status_code == 200
    assert response.content == INDEX_HTML


@pytest.mark.asyncio
async def test_path_outside_bundle_serves_index(bundle_client):
    response = await bundle_client.get("/static/..%2F..%2Fmenu.db")
    assert response.status_code == 200
    assert response.content == INDEX_HTML
