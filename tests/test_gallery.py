import os

import pytest

from relay.services.changes import CHANGE_LOG_LIMIT, ChangeLog
from relay.services.errors import ValidationError
from relay.services.gallery import CAMERA_HISTORY_LIMIT, MediaGallery, infer_kind
from relay.services.storage import device_file_prefix
from tests.conftest import image_part, stored_file


def test_camera_items_prepend_and_cap(upload_dir):
    gallery = MediaGallery(upload_dir)
    gallery.add("D1", stored_file("D1_photo_1_a.jpg"), "photo")
    for i in range(CAMERA_HISTORY_LIMIT + 5):
        gallery.add("D1", stored_file(f"D1_back_camera_{i}_b.jpg"), "back_camera", source_request_id=f"r{i}")

    items = gallery.list("D1")
    camera = [item for item in items if item.kind == "back_camera"]
    assert len(camera) == CAMERA_HISTORY_LIMIT
    assert camera[0].source_request_id == f"r{CAMERA_HISTORY_LIMIT + 4}"
    assert camera[-1].source_request_id == "r5"
    # Generic uploads are not subject to the camera cap.
    assert [item.kind for item in items].count("photo") == 1


def test_generic_uploads_append_unbounded(upload_dir):
    gallery = MediaGallery(upload_dir)
    for i in range(CAMERA_HISTORY_LIMIT + 10):
        gallery.add("D1", stored_file(f"D1_screenshot_{i}_s.png"), "screenshot")
    items = gallery.list("D1", "screenshot")
    assert len(items) == CAMERA_HISTORY_LIMIT + 10
    assert items[0].stored_name == "D1_screenshot_0_s.png"


def test_unknown_kind_rejected(upload_dir):
    with pytest.raises(ValidationError):
        MediaGallery(upload_dir).add("D1", stored_file(), "video")


def test_infer_kind_from_stored_name():
    prefix = device_file_prefix("D1")
    assert infer_kind("D1_front_camera_17_x.jpg", prefix) == "front_camera"
    assert infer_kind("D1_back_camera_17_x.jpg", prefix) == "back_camera"
    assert infer_kind("D1_screenshot_17_x.png", prefix) == "screenshot"
    assert infer_kind("D1_whatever.jpg", prefix) == "photo"


def test_device_prefix_is_filename_safe():
    assert device_file_prefix("D1") == "D1_"
    assert device_file_prefix("../D_1") == "%2E%2E%2FD%5F1_"


def test_device_prefixes_never_collide():
    ids = ["kid_1", "kid-1", "kid 1", "kid%1", "kid.1"]
    assert len({device_file_prefix(device_id) for device_id in ids}) == len(ids)
    assert not device_file_prefix("kid-1_photo").startswith(device_file_prefix("kid-1"))


def test_directory_scan_fallback(upload_dir):
    for name in ("D1_front_camera_1_a.jpg", "D1_screenshot_2_b.png", "D10_photo_3_c.jpg"):
        with open(os.path.join(upload_dir, name), "wb") as f:
            f.write(b"data")

    gallery = MediaGallery(upload_dir)
    items = gallery.list("D1")
    assert sorted(item.stored_name for item in items) == ["D1_front_camera_1_a.jpg", "D1_screenshot_2_b.png"]
    assert [item.kind for item in gallery.list("D1", "screenshot")] == ["screenshot"]
    assert gallery.count("D1") == 0


def test_remove_suppresses_fallback_and_keeps_files(upload_dir):
    path = os.path.join(upload_dir, "D1_photo_1_a.jpg")
    with open(path, "wb") as f:
        f.write(b"data")
    gallery = MediaGallery(upload_dir)
    gallery.add("D1", stored_file("D1_photo_1_a.jpg"), "photo")

    assert gallery.remove("D1") == 1
    assert gallery.list("D1") == []
    assert os.path.exists(path)

    gallery.add("D1", stored_file("D1_photo_2_b.jpg"), "photo")
    assert [item.stored_name for item in gallery.list("D1")] == ["D1_photo_2_b.jpg"]


def test_remove_can_delete_files(upload_dir):
    path = os.path.join(upload_dir, "D1_photo_1_a.jpg")
    other = os.path.join(upload_dir, "D2_photo_1_a.jpg")
    for target in (path, other):
        with open(target, "wb") as f:
            f.write(b"data")
    gallery = MediaGallery(upload_dir)
    gallery.remove("D1", delete_files=True)
    assert not os.path.exists(path)
    assert os.path.exists(other)


def test_change_log_is_bounded_fifo():
    log = ChangeLog()
    for i in range(CHANGE_LOG_LIMIT + 3):
        log.record("D1", "added", f"/dcim/{i}.jpg", "photo", 1_700_000_000 + i)
    events = log.list("D1")
    assert len(events) == CHANGE_LOG_LIMIT
    assert events[0].path == "/dcim/3.jpg"
    assert events[-1].reported_at == (1_700_000_000 + CHANGE_LOG_LIMIT + 2) * 1000


def test_change_log_validation():
    log = ChangeLog()
    with pytest.raises(ValidationError):
        log.record("D1", "renamed", "/a.jpg")
    with pytest.raises(ValidationError):
        log.record("D1", "added", "")
    with pytest.raises(ValidationError):
        log.record(None, "added", "/a.jpg")
    log.record("D1", "Deleted", "/a.jpg")
    assert log.list("D1")[0].action == "deleted"
    log.clear("D1")
    assert log.list("D1") == []


def test_http_gallery_and_screenshots(client):
    response = client.post("/api/upload-gallery", data={"deviceId": "D1"}, files=image_part("holiday.jpg"))
    assert response.status_code == 200
    item = response.json()["item"]
    assert item["kind"] == "photo"
    assert item["originalName"] == "holiday.jpg"
    assert item["storedName"].startswith("D1_photo_")
    assert item["url"] == f"/uploads/{item['storedName']}"

    client.post("/api/upload-screenshot", data={"deviceId": "D1"}, files=image_part("screen.png", content_type="image/png"))

    gallery = client.get("/api/gallery/D1").json()
    assert [i["kind"] for i in gallery["items"]] == ["photo", "screenshot"]
    screenshots = client.get("/api/screenshots/D1").json()
    assert screenshots["count"] == 1

    assert client.get("/api/gallery/D1", params={"kind": "video"}).status_code == 400

    cleared = client.delete("/api/clear-gallery/D1").json()
    assert cleared["removed"] == 2
    assert client.get("/api/gallery/D1").json()["items"] == []


def test_http_upload_errors(client):
    assert client.post("/api/upload-gallery", data={}, files=image_part()).status_code == 400
    assert client.post("/api/upload-gallery", data={"deviceId": "D1"}).status_code == 400
    empty = client.post("/api/upload-gallery", data={"deviceId": "D1"}, files=image_part(content=b""))
    assert empty.status_code == 400
    assert empty.json()["error"] == "Empty file cannot be uploaded."


def test_http_missing_file_is_404(client):
    assert client.get("/api/files/nothing.jpg").status_code == 404


def test_http_gallery_changes(client):
    response = client.post(
        "/api/gallery-changes",
        json={"deviceId": "D1", "action": "added", "path": "/dcim/a.jpg", "kind": "photo"},
    )
    assert response.json()["count"] == 1
    assert client.post("/api/gallery-changes", json={"deviceId": "D1", "action": "x", "path": "/a"}).status_code == 400

    changes = client.get("/api/gallery-changes/D1").json()
    assert changes["changes"][0]["path"] == "/dcim/a.jpg"
    assert changes["changes"][0]["reportedAt"] > 0

    client.delete("/api/gallery-changes/D1")
    assert client.get("/api/gallery-changes/D1").json()["count"] == 0


def test_remove_without_files_does_not_remember_device(upload_dir):
    gallery = MediaGallery(upload_dir)
    assert gallery.remove("ghost") == 0
    assert "ghost" not in gallery._cleared

    gallery.clear_all(known_device_ids=["ghost", "other"])
    assert gallery._cleared == set()


def test_http_gallery_is_not_shared_between_similar_ids(client):
    response = client.post("/api/upload-gallery", data={"deviceId": "kid_1"}, files=image_part())
    assert response.status_code == 200
    url = response.json()["item"]["url"]

    assert client.get("/api/gallery/kid-1").json()["items"] == []
    assert len(client.get("/api/gallery/kid_1").json()["items"]) == 1
    assert client.get(url).status_code == 200
