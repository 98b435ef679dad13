"""
Menu Service Backend: Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test gets its own SQLite database (aiosqlite) and image
       directory under pytest's tmp_path, so no PostgreSQL is needed.

Fixture Hierarchy (all function-scoped):
    ├── test_settings:       Settings pointing at tmp_path
    ├── image_storage:       ImageStorage rooted at tmp_path/images
    ├── menu_store:          opened MenuStore with the `menu` table created
    ├── menu_service:        MenuService (inlining off)
    ├── inline_menu_service: MenuService (inlining on), same store and images
    ├── app / test_client:   FastAPI app + HTTPX AsyncClient over ASGITransport
    └── sample_png_bytes:    small PNG payload for uploads
"""

import os
import tempfile

# Override settings for testing BEFORE any menu_service import: importing
# menu_service.main builds a module-level app from the environment.
_IMPORT_ROOT = tempfile.mkdtemp(prefix="menu_service_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_IMPORT_ROOT}/import.db"
os.environ["IMAGES_DIR"] = os.path.join(_IMPORT_ROOT, "images")
os.environ["FRONTEND_BUILD_DIR"] = os.path.join(_IMPORT_ROOT, "build")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from menu_service.config import Settings
from menu_service.database import MenuStore
from menu_service.main import create_app
from menu_service.services.image_storage import ImageStorage
from menu_service.services.menu_service import MenuService


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'menu.db'}",
        images_dir=str(tmp_path / "images"),
        frontend_build_dir=str(tmp_path / "build"),
        db_connect_attempts=1,
        log_level="WARNING",
    )


@pytest.fixture
def image_storage(test_settings) -> ImageStorage:
    return ImageStorage(
        test_settings.images_dir,
        max_size=test_settings.max_image_size,
        timeout=test_settings.file_timeout_seconds,
    )


@pytest_asyncio.fixture
async def menu_store(test_settings):
    """An opened store over a fresh SQLite file; closed after the test."""
    store = MenuStore.from_settings(test_settings)
    await store.open(create_tables=True)
    yield store
    await store.close()


@pytest.fixture
def menu_service(menu_store, image_storage) -> MenuService:
    return MenuService(menu_store, image_storage, inline_images=False)


@pytest.fixture
def inline_menu_service(menu_store, image_storage) -> MenuService:
    return MenuService(menu_store, image_storage, inline_images=True)


@pytest.fixture
def app(test_settings, menu_service):
    return create_app(test_settings, service=menu_service)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient routed straight into the app.

    ASGITransport does not run the lifespan; the store is already opened by
    the ``menu_store`` fixture.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_png_bytes() -> bytes:
    """PNG signature plus an IHDR chunk header: enough to look like a PNG."""
    return (
        b"\x89PNG\r\n\x1a\n"
        b"\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
        b"\x1f\x15\xc4\x89"
    )
