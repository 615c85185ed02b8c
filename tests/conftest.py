# tests/conftest.py
import itertools

import pytest
from unittest.mock import MagicMock

# Settings can be imported without reading the environment; only
# instantiation does that.
from shopify_dam.config import DEFAULT_ALLOWED_MIME_TYPES, Settings, get_settings
from shopify_dam.service import DamService
from shopify_dam.storage.base import ContentHostClient
from shopify_dam.storage.dto import Catalog, StagedAsset, StagedTarget
from shopify_dam.storage.memory import InMemoryMetadataStore


@pytest.fixture
def mock_settings(tmp_path):
    """
    Provides a mock of the application settings for testing.
    This avoids the need for environment variables during tests.
    """
    settings = MagicMock(spec=Settings)
    settings.LOG_LEVEL = "INFO"
    settings.LOG_FILE_NAME = "dam.log"
    settings.DAM_DATA_PATH = str(tmp_path)
    settings.DAM_CATALOG_FILE = "catalog.json"
    settings.DAM_ROOT_NAME = "My Files"
    settings.DAM_MAX_FILE_SIZE = 50 * 1024 * 1024
    settings.DAM_ALLOWED_MIME_TYPES = list(DEFAULT_ALLOWED_MIME_TYPES)
    settings.DAM_READ_TAGS = ["admin", "affiliate"]
    settings.DAM_WRITE_TAGS = ["admin"]
    settings.DAM_SEARCH_LIMIT = 50
    settings.DAM_RECENT_LIMIT = 20
    settings.SHOPIFY_STORE_DOMAIN = None
    settings.SHOPIFY_ACCESS_TOKEN = None
    settings.SHOPIFY_API_VERSION = "2024-01"
    settings.SHOPIFY_REQUEST_TIMEOUT = 30.0
    settings.SERVER_HOST = "127.0.0.1"
    settings.SERVER_PORT = 8000

    # --- Properties must be real values, not auto-created mocks ---
    settings.shopify_configured = False
    settings.DATA_DIR = tmp_path
    settings.CATALOG_PATH = tmp_path / "catalog.json"
    settings.LOG_FILE = tmp_path / "dam.log"

    return settings


@pytest.fixture(autouse=True)
def patch_settings_class(monkeypatch, mock_settings):
    """
    Replaces the `Settings` constructor, so any code calling `get_settings()`
    during a test receives `mock_settings` instead of reading the environment.
    """
    get_settings.cache_clear()
    monkeypatch.setattr("shopify_dam.config.Settings", lambda *args, **kwargs: mock_settings)
    yield
    get_settings.cache_clear()


@pytest.fixture
def catalog():
    return Catalog.new("My Files")


@pytest.fixture
def store():
    return InMemoryMetadataStore(root_name="My Files")


@pytest.fixture
def mock_host():
    """A content host that accepts every upload and hands out sequential asset ids."""
    host = MagicMock(spec=ContentHostClient)
    counter = itertools.count(1)

    host.create_staged_upload.return_value = StagedTarget(
        upload_url="https://uploads.example.com/bucket",
        resource_url="https://uploads.example.com/tmp/staged",
        parameters=[{"name": "key", "value": "tmp/staged"}],
    )

    def create_file(resource_url, mime_type, filename):
        n = next(counter)
        return StagedAsset(
            external_asset_id=f"gid://shopify/MediaImage/{n}",
            url=f"https://cdn.example.com/{n}/{filename}",
            preview_url=f"https://cdn.example.com/{n}/{filename}",
        )

    host.create_file.side_effect = create_file
    return host


@pytest.fixture
def service(store, mock_settings, mock_host):
    return DamService(store, settings=mock_settings, host=mock_host)
