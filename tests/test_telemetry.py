import time

import pytest

from relay.services.devices import DeviceRegistry
from relay.services.errors import ValidationError
from relay.services.telemetry import TelemetryStore, make_location_fix, make_notification


@pytest.fixture
def telemetry():
    registry = DeviceRegistry()
    return TelemetryStore(registry), registry


def test_location_history_keeps_latest_100(telemetry):
    store, _ = telemetry
    for i in range(150):
        store.append_location("D1", make_location_fix(i * 0.1, 10.0, captured_at=1_700_000_000_000 + i))

    fixes = store.get_locations("D1")
    assert len(fixes) == 100
    assert fixes[0].captured_at == 1_700_000_000_050
    assert fixes[-1].captured_at == 1_700_000_000_149
    assert [f.captured_at for f in store.get_locations("D1", limit=2)] == [
        1_700_000_000_148,
        1_700_000_000_149,
    ]


def test_location_refreshes_device_snapshot(telemetry):
    store, registry = telemetry
    store.append_location("D1", make_location_fix(28.6, 77.2, source="gps"))
    device = registry.get("D1")
    assert device.status == "online"
    assert device.last_location["latitude"] == 28.6
    assert device.last_location["source"] == "gps"


def test_location_requires_coordinates():
    with pytest.raises(ValidationError):
        make_location_fix(None, 77.2)
    with pytest.raises(ValidationError):
        make_location_fix(120.0, 77.2)


def test_notifications_are_newest_first(telemetry):
    store, _ = telemetry
    store.append_notification("D1", make_notification("N1", None, package_name="com.a"))
    store.append_notification("D1", make_notification("N2", None, package_name="com.b"))
    assert [n.title for n in store.get_notifications("D1")] == ["N2", "N1"]


def test_notification_cap_drops_oldest(telemetry):
    store, _ = telemetry
    for i in range(205):
        store.append_notification("D1", make_notification(f"N{i}", None))
    notes = store.get_notifications("D1")
    assert len(notes) == 200
    assert notes[0].title == "N204"
    assert notes[-1].title == "N5"


def test_notification_requires_title_or_text():
    with pytest.raises(ValidationError):
        make_notification("  ", None)
    note = make_notification(None, "body only", package_name="com.whatsapp")
    assert note.body == "body only"
    assert note.app_label == "com.whatsapp"
    assert note.id


def test_notification_filter_and_stats(telemetry):
    store, _ = telemetry
    store.append_notification("D1", make_notification("a", None, package_name="com.whatsapp", app_name="WhatsApp"))
    store.append_notification("D1", make_notification("b", None, package_name="com.whatsapp", app_name="WhatsApp"))
    store.append_notification("D1", make_notification("c", None, package_name="com.insta", app_name="Instagram"))
    store.append_notification(
        "D1",
        make_notification("old", None, app_name="Mail", captured_at=time.time() - 3 * 86400),
    )

    assert [n.title for n in store.get_notifications("D1", app_filter="whatsapp")] == ["b", "a"]
    assert store.get_notifications("D1", app_filter="whats") == []
    assert [n.title for n in store.get_notifications("D1", app_filter="com.insta")] == ["c"]
    assert len(store.get_notifications("D1", limit=2)) == 2

    stats = store.get_stats("D1")
    assert stats["total"] == 4
    assert stats["byApp"] == {"Mail": 1, "Instagram": 1, "WhatsApp": 2}
    assert stats["todayCount"] == 3
    assert stats["mostActiveApp"] == "WhatsApp"


def test_stats_for_unknown_device(telemetry):
    store, _ = telemetry
    assert store.get_stats("nobody") == {"total": 0, "byApp": {}, "todayCount": 0, "mostActiveApp": None}


def test_clear_drops_both_histories(telemetry):
    store, _ = telemetry
    store.append_location("D1", make_location_fix(1.0, 2.0))
    store.append_notification("D1", make_notification("x", None))
    store.clear("D1")
    assert store.location_count("D1") == 0
    assert store.notification_count("D1") == 0


def test_http_location_validation(client):
    response = client.post("/api/location-update", json={"deviceId": "D1", "latitude": 28.6})
    assert response.status_code == 400
    assert response.json()["success"] is False

    response = client.post("/api/location-update", json={"latitude": 28.6, "longitude": 77.2})
    assert response.status_code == 400


def test_http_telemetry_reads(client):
    for lat in (1.0, 2.0, 3.0):
        client.post(
            "/api/location-update",
            json={"deviceId": "D1", "latitude": lat, "longitude": 5.0, "provider": "gps", "updateType": "periodic"},
        )
    client.post(
        "/api/notification-update",
        json={"deviceId": "D1", "title": "Hello", "packageName": "com.chat", "appName": "Chat"},
    )

    locations = client.get("/api/locations/D1", params={"limit": 2}).json()
    assert [fix["latitude"] for fix in locations["locations"]] == [2.0, 3.0]
    assert locations["latest"]["source"] == "gps"

    notes = client.get("/api/notifications/D1", params={"app": "chat"}).json()
    assert notes["count"] == 1
    assert notes["notifications"][0]["appLabel"] == "Chat"

    stats = client.get("/api/notification-stats/D1").json()["stats"]
    assert stats["mostActiveApp"] == "Chat"

    assert client.delete("/api/telemetry/D1").json()["success"] is True
    assert client.get("/api/locations/D1").json()["count"] == 0


def test_http_notification_requires_text(client):
    response = client.post("/api/notification-update", json={"deviceId": "D1", "packageName": "com.x"})
    assert response.status_code == 400
    assert response.json()["error"] == "title or text is required"


def test_http_huge_notification_timestamp_is_accepted(client):
    response = client.post(
        "/api/notification-update",
        json={"deviceId": "D1", "title": "Hi", "packageName": "com.chat", "timestamp": 1e20},
    )
    assert response.status_code == 200

    response = client.get("/api/notification-stats/D1")
    assert response.status_code == 200
    stats = response.json()["stats"]
    assert stats["total"] == 1
    assert stats["todayCount"] == 1
