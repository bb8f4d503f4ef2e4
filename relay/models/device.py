from dataclasses import dataclass
from typing import Any

DEFAULT_DEVICE_NAME = "Child Device"


@dataclass
class Device:
    id: str
    registered_at: str
    last_seen_at: str
    display_name: str = DEFAULT_DEVICE_NAME
    battery_level: int | None = None
    status: str = "online"
    last_battery_update_at: str | None = None
    client_ip: str | None = None
    # Snapshots copied from telemetry at update time, allowed to go stale.
    last_location: dict[str, Any] | None = None
    last_notification: dict[str, Any] | None = None
