import pytest
from fastapi.testclient import TestClient

from study_portal import services
from study_portal.config import settings
from study_portal.main import app
from study_portal.store import MemoryStore, get_store
from study_portal.utils.rate_limit import LoginThrottle

ADMIN = ("admin", "secret-pass")


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Keep uploaded binaries inside the test's temp folder."""
    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", target)
    return target


@pytest.fixture
def store():
    """A fresh, isolated store with the admin account seeded."""
    s = MemoryStore().init()
    services.AuthService(s).ensure_admin(*ADMIN)
    yield s
    s.shutdown()


@pytest.fixture
def client(store, monkeypatch):
    monkeypatch.setattr("study_portal.main._login_throttle", LoginThrottle(max_failures=3, window_seconds=60))
    app.dependency_overrides[get_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_store, None)
