import pytest
from fastapi.testclient import TestClient

from relay.main import create_app
from relay.models.media import StoredFile
from relay.store import RelayStore

JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64 + b"\xff\xd9"


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return str(path)


@pytest.fixture
def store(upload_dir):
    return RelayStore(upload_dir=upload_dir)


@pytest.fixture
def client(store):
    """Test client bound to a fresh in-memory store."""
    return TestClient(create_app(store))


@pytest.fixture
def register(client):
    def _register(device_id="D1", **fields):
        response = client.post("/api/register", json={"deviceId": device_id, **fields})
        assert response.status_code == 200
        return response.json()["device"]

    return _register


def stored_file(name="D1_front_camera_1_pic.jpg", size=10):
    return StoredFile(path=f"/tmp/{name}", stored_name=name, original_name="pic.jpg", size_bytes=size)


def image_part(name="pic.jpg", content=JPEG_BYTES, content_type="image/jpeg"):
    return {"image": (name, content, content_type)}
