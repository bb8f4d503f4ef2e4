import logging
from fastapi import APIRouter, Body, Depends, Request

from relay.api.payloads import device_payload
from relay.schemas.device import BatteryUpdateIn, DeviceDeleteIn, DeviceRegisterIn
from relay.services.devices import require_device_id
from relay.services.errors import NotFoundError
from relay.services.timefmt import display_time
from relay.store import RelayStore

router = APIRouter(prefix="/api", tags=["devices"])
logger = logging.getLogger(__name__)


def get_store(request: Request) -> RelayStore:
    return request.app.state.store


def _resolve_client_ip(request: Request) -> str | None:
    forwarded = (request.headers.get("X-Forwarded-For") or "").strip()
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return None


@router.post("/register")
def register_device(
    request: Request,
    payload: DeviceRegisterIn | None = Body(None),
    store: RelayStore = Depends(get_store),
):
    payload = payload or DeviceRegisterIn()
    device = store.devices.upsert(
        payload.device_id,
        {
            "display_name": (payload.device_name or "").strip() or None,
            "battery_level": payload.battery_level,
            "client_ip": _resolve_client_ip(request),
        },
    )
    logger.info("Device %s registered (%d total)", device.id, store.devices.count())
    return {
        "success": True,
        "message": "Device registered successfully",
        "device": device_payload(device, store.counters(device.id)),
    }


@router.post("/battery-update")
def battery_update(payload: BatteryUpdateIn | None = Body(None), store: RelayStore = Depends(get_store)):
    payload = payload or BatteryUpdateIn()
    device = store.devices.upsert(
        payload.device_id,
        {
            "display_name": (payload.device_name or "").strip() or None,
            "battery_level": payload.battery_level,
            "last_battery_update_at": display_time(payload.timestamp) if payload.battery_level is not None else None,
        },
    )
    return {
        "success": True,
        "message": "Battery update received",
        "batteryLevel": device.battery_level,
    }


@router.get("/devices")
def list_devices(store: RelayStore = Depends(get_store)):
    devices = [device_payload(device, counters) for device, counters in store.device_summaries()]
    return {"success": True, "count": len(devices), "connectedDevices": devices}


@router.get("/devices/{device_id}")
def get_device(device_id: str, store: RelayStore = Depends(get_store)):
    device = store.devices.get(device_id)
    return {"success": True, "device": device_payload(device, store.counters(device.id))}


@router.delete("/delete-device")
def delete_device(
    payload: DeviceDeleteIn | None = Body(None),
    device_id: str | None = None,
    store: RelayStore = Depends(get_store),
):
    key = require_device_id((payload.device_id if payload else None) or device_id)
    if not store.remove_device(key):
        raise NotFoundError(f"Device {key} not found")
    return {"success": True, "message": f"Device {key} deleted"}


@router.delete("/clear")
def clear_devices(store: RelayStore = Depends(get_store)):
    store.clear()
    return {"success": True, "message": "All devices cleared"}
