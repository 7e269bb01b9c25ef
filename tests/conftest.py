import os
import pathlib
import sys

import pytest
from PIL import Image

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certdesk.app import create_app, db, get_store
from certdesk.services.object_storage import (
    CertificateStorage,
    StorageResponse,
    StorageTransport,
)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


class MemoryTransport(StorageTransport):
    """Object storage double; ``scripted`` queues statuses or exceptions per method."""

    base = "https://storage.test/storage/v1/object/public/certificates"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self.scripted: dict[str, list] = {}

    def _scripted(self, method):
        queue = self.scripted.get(method)
        if not queue:
            return None
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return StorageResponse(item, b"scripted failure", "Scripted")

    def create(self, key, data, content_type):
        self.calls.append(("create", key))
        resp = self._scripted("create")
        if resp is not None:
            return resp
        if key in self.objects:
            return StorageResponse(409, b'{"error":"Duplicate"}', "Conflict")
        self.objects[key] = data
        return StorageResponse(200, b"{}", "OK")

    def update(self, key, data, content_type):
        self.calls.append(("update", key))
        resp = self._scripted("update")
        if resp is not None:
            return resp
        self.objects[key] = data
        return StorageResponse(200, b"{}", "OK")

    def get(self, key):
        self.calls.append(("get", key))
        resp = self._scripted("get")
        if resp is not None:
            return resp
        if key not in self.objects:
            return StorageResponse(404, b"", "Not Found")
        return StorageResponse(200, self.objects[key], "OK")

    def delete(self, key):
        self.calls.append(("delete", key))
        resp = self._scripted("delete")
        if resp is not None:
            return resp
        if self.objects.pop(key, None) is None:
            return StorageResponse(404, b"", "Not Found")
        return StorageResponse(200, b"{}", "OK")

    def head(self, key):
        self.calls.append(("head", key))
        resp = self._scripted("head")
        if resp is not None:
            return resp
        return StorageResponse(200 if key in self.objects else 404)

    def public_url(self, key):
        return f"{self.base}/{key}"


def solid_background(url, timeout):
    return Image.new("RGB", (240, 170), (30, 60, 120))


@pytest.fixture
def app(tmp_path):
    os.environ.pop("SUPABASE_URL", None)
    os.environ.pop("SUPABASE_ANON_KEY", None)
    application = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "STORE_DIR": str(tmp_path / "store"),
            "ISSUANCE_EXECUTOR": "inline",
            "RENDER_SETTLE_SECONDS": 0,
            "VERIFICATION_ORIGIN": "https://x.test",
        }
    )
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return get_store()


@pytest.fixture
def memory_transport():
    return MemoryTransport()


@pytest.fixture
def storage(memory_transport):
    return CertificateStorage(memory_transport, sleep=lambda seconds: None)


@pytest.fixture
def wired_store(store, storage):
    """Store whose issuer uploads into memory and renders small bitmaps."""
    store.issuer.storage = storage
    store.issuer.render_options = {
        "settle_seconds": 0,
        "scale": 1,
        "image_loader": solid_background,
    }
    return store
