import dataclasses
import logging
import threading
import uuid
from collections import Counter, defaultdict, deque

from relay.models.telemetry import LocationFix, Notification
from relay.services.devices import DeviceRegistry, require_device_id
from relay.services.errors import ValidationError
from relay.services.timefmt import epoch_ms, is_today

logger = logging.getLogger(__name__)

LOCATION_HISTORY_LIMIT = 100
NOTIFICATION_HISTORY_LIMIT = 200


def make_location_fix(
    latitude: float | None,
    longitude: float | None,
    accuracy: float | None = None,
    speed: float | None = None,
    bearing: float | None = None,
    altitude: float | None = None,
    captured_at=None,
    source: str | None = None,
    kind: str | None = None,
) -> LocationFix:
    if latitude is None or longitude is None:
        raise ValidationError("latitude and longitude are required")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError("latitude/longitude out of range")
    return LocationFix(
        latitude=float(latitude),
        longitude=float(longitude),
        accuracy=accuracy,
        speed=speed,
        bearing=bearing,
        altitude=altitude,
        captured_at=epoch_ms(captured_at),
        source=(source or "").strip() or "unknown",
        kind=(kind or "").strip() or "periodic",
    )


def make_notification(
    title: str | None,
    text: str | None,
    package_name: str | None = None,
    app_name: str | None = None,
    notification_id: str | None = None,
    captured_at=None,
    category: str | None = None,
    priority: int | None = None,
) -> Notification:
    clean_title = (title or "").strip()
    clean_text = (text or "").strip()
    if not clean_title and not clean_text:
        raise ValidationError("title or text is required")
    package = (package_name or "").strip() or "unknown"
    return Notification(
        id=(notification_id or "").strip() or uuid.uuid4().hex,
        package_name=package,
        app_label=(app_name or "").strip() or package,
        title=clean_title,
        body=clean_text,
        captured_at=epoch_ms(captured_at),
        category=category,
        priority=priority,
    )


class TelemetryStore:
    def __init__(self, registry: DeviceRegistry) -> None:
        self._registry = registry
        self._locations: dict[str, deque[LocationFix]] = defaultdict(
            lambda: deque(maxlen=LOCATION_HISTORY_LIMIT)
        )
        self._notifications: dict[str, deque[Notification]] = defaultdict(
            lambda: deque(maxlen=NOTIFICATION_HISTORY_LIMIT)
        )
        self._lock = threading.RLock()

    def append_location(self, device_id: str, fix: LocationFix) -> LocationFix:
        key = require_device_id(device_id)
        with self._lock:
            # A full deque drops from the left: oldest fix goes first.
            self._locations[key].append(fix)
        self._registry.upsert(key, {"last_location": dataclasses.asdict(fix)})
        return fix

    def append_notification(self, device_id: str, note: Notification) -> Notification:
        key = require_device_id(device_id)
        with self._lock:
            # Newest first; a full deque drops the tail, which is the oldest.
            self._notifications[key].appendleft(note)
        self._registry.upsert(key, {"last_notification": dataclasses.asdict(note)})
        return note

    def get_locations(self, device_id: str, limit: int | None = None) -> list[LocationFix]:
        with self._lock:
            fixes = list(self._locations.get(device_id, ()))
        if limit is not None and limit >= 0:
            fixes = fixes[-limit:] if limit else []
        return fixes

    def get_notifications(
        self, device_id: str, limit: int | None = None, app_filter: str | None = None
    ) -> list[Notification]:
        with self._lock:
            notes = list(self._notifications.get(device_id, ()))
        needle = (app_filter or "").strip().lower()
        if needle:
            notes = [n for n in notes if needle in {n.package_name.lower(), n.app_label.lower()}]
        if limit is not None and limit >= 0:
            notes = notes[:limit]
        return notes

    def get_stats(self, device_id: str) -> dict:
        with self._lock:
            notes = list(self._notifications.get(device_id, ()))
        by_app = Counter(n.app_label for n in notes)
        most_active = by_app.most_common(1)
        return {
            "total": len(notes),
            "byApp": dict(by_app),
            "todayCount": sum(1 for n in notes if is_today(n.captured_at)),
            "mostActiveApp": most_active[0][0] if most_active else None,
        }

    def location_count(self, device_id: str) -> int:
        with self._lock:
            return len(self._locations.get(device_id, ()))

    def notification_count(self, device_id: str) -> int:
        with self._lock:
            return len(self._notifications.get(device_id, ()))

    def clear(self, device_id: str) -> None:
        with self._lock:
            self._locations.pop(device_id, None)
            self._notifications.pop(device_id, None)
        logger.info("Cleared telemetry for device %s", device_id)

    def clear_all(self) -> None:
        with self._lock:
            self._locations.clear()
            self._notifications.clear()
