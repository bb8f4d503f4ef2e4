import dataclasses
from typing import Any

from pydantic.alias_generators import to_camel

from relay.models.capture_request import CaptureRequest
from relay.models.device import Device
from relay.services.gallery import file_url


def camelize(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)
    if isinstance(value, dict):
        return {to_camel(str(key)): camelize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


def device_payload(device: Device, counters: dict[str, int] | None = None) -> dict:
    payload = {
        "id": device.id,
        "deviceName": device.display_name,
        "batteryLevel": device.battery_level,
        "status": device.status,
        "lastSeenAt": device.last_seen_at,
        "registeredAt": device.registered_at,
        "lastBatteryUpdate": device.last_battery_update_at,
        "ip": device.client_ip,
        "lastLocation": camelize(device.last_location),
        "lastNotification": camelize(device.last_notification),
    }
    payload.update(counters or {})
    return payload


def capture_request_payload(request: CaptureRequest) -> dict:
    image = request.image
    return {
        "requestId": request.request_id,
        "deviceId": request.device_id,
        "requesterId": request.requester_id,
        "cameraFacing": request.facing,
        "status": request.status,
        "requestedAt": request.requested_at,
        "capturedAt": request.captured_at,
        "imageRef": camelize(image) if image else None,
        "imageUrl": file_url(image.stored_name) if image else None,
        "failureReason": request.failure_reason,
    }
