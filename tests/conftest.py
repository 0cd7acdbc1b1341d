import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
from messaging import get_messenger
from settings import Settings, get_settings
from tests.helpers import TEST_SECRET, FakeMessenger


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "uploads"),
        frontend_url="http://frontend.test",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["labbe_test"]


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def client(db, settings, messenger):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_messenger] = lambda: messenger
    yield TestClient(app)
    app.dependency_overrides.clear()
