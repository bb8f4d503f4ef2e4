import copy
import logging
import threading
from typing import Any, Callable

from relay.models.device import Device
from relay.services.errors import NotFoundError, ValidationError
from relay.services.timefmt import display_time

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "display_name",
    "battery_level",
    "last_battery_update_at",
    "client_ip",
    "last_location",
    "last_notification",
}


def require_device_id(device_id: str | None) -> str:
    value = (device_id or "").strip()
    if not value:
        raise ValidationError("deviceId is required")
    return value


class DeviceRegistry:
    """Authoritative table of child devices, keyed by the caller-supplied id."""

    def __init__(self) -> None:
        self._devices: dict[str, Device] = {}
        self._lock = threading.RLock()

    def upsert(self, device_id: str | None, fields: dict[str, Any] | None = None) -> Device:
        """Create the device or merge the non-null ``fields`` into the existing record.

        Fields left as ``None`` never overwrite a value set by an earlier call, so a
        reconnecting child that omits its name keeps the name it registered with.
        """
        key = require_device_id(device_id)
        updates = {name: value for name, value in (fields or {}).items() if value is not None}
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown device fields: {sorted(unknown)}")

        now = display_time()
        with self._lock:
            device = self._devices.get(key)
            if device is None:
                device = Device(id=key, registered_at=now, last_seen_at=now)
                self._devices[key] = device
                logger.info("Registered device %s", key)
            for name, value in updates.items():
                setattr(device, name, copy.deepcopy(value))
            device.last_seen_at = now
            device.status = "online"
            return copy.deepcopy(device)

    def get(self, device_id: str) -> Device:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                raise NotFoundError(f"Device {device_id} not found")
            return copy.deepcopy(device)

    def exists(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._devices

    def remove(self, device_id: str) -> bool:
        with self._lock:
            return self._devices.pop(device_id, None) is not None

    def list(
        self, counters: Callable[[str], dict[str, int]] | None = None
    ) -> list[tuple[Device, dict[str, int]]]:
        with self._lock:
            devices = [copy.deepcopy(device) for device in self._devices.values()]
        # Counters query other stores, so they are computed outside the registry lock.
        return [(device, counters(device.id) if counters else {}) for device in devices]

    def count(self) -> int:
        with self._lock:
            return len(self._devices)

    def clear(self) -> None:
        with self._lock:
            self._devices.clear()
