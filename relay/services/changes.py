import threading
from collections import deque

from relay.models.change_event import CHANGE_ACTIONS, ChangeEvent
from relay.services.devices import require_device_id
from relay.services.errors import ValidationError
from relay.services.timefmt import epoch_ms

CHANGE_LOG_LIMIT = 50


class ChangeLog:
    """Gallery mutations reported by the child, so the parent can sync deltas."""

    def __init__(self) -> None:
        self._events: dict[str, deque[ChangeEvent]] = {}
        self._lock = threading.RLock()

    def record(
        self,
        device_id: str | None,
        action: str | None,
        path: str | None,
        kind: str | None = None,
        timestamp=None,
    ) -> ChangeEvent:
        key = require_device_id(device_id)
        normalized_action = (action or "").strip().lower()
        if normalized_action not in CHANGE_ACTIONS:
            raise ValidationError("action must be 'added' or 'deleted'")
        clean_path = (path or "").strip()
        if not clean_path:
            raise ValidationError("path is required")
        event = ChangeEvent(
            action=normalized_action,
            path=clean_path,
            kind=(kind or "").strip() or "photo",
            reported_at=epoch_ms(timestamp),
        )
        with self._lock:
            events = self._events.setdefault(key, deque(maxlen=CHANGE_LOG_LIMIT))
            events.append(event)
        return event

    def list(self, device_id: str) -> list[ChangeEvent]:
        with self._lock:
            return list(self._events.get(device_id, ()))

    def count(self, device_id: str) -> int:
        with self._lock:
            return len(self._events.get(device_id, ()))

    def clear(self, device_id: str) -> None:
        with self._lock:
            self._events.pop(device_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._events.clear()
