import logging
import os
import threading
from urllib.parse import quote

from relay.models.media import (
    CAMERA_KINDS,
    KIND_BACK_CAMERA,
    KIND_FRONT_CAMERA,
    KIND_PHOTO,
    KIND_SCREENSHOT,
    MEDIA_KINDS,
    MediaItem,
    StoredFile,
)
from relay.services.errors import ValidationError
from relay.services.storage import UPLOAD_DIR, device_file_prefix
from relay.services.timefmt import display_time

logger = logging.getLogger(__name__)

CAMERA_HISTORY_LIMIT = 50
FILE_URL_PREFIX = "/uploads"
# Longest tokens first so "front_camera" is not read as a plain photo.
_KIND_TOKENS = (KIND_FRONT_CAMERA, KIND_BACK_CAMERA, KIND_SCREENSHOT, KIND_PHOTO)


def file_url(stored_name: str) -> str:
    return f"{FILE_URL_PREFIX}/{quote(stored_name)}"


def infer_kind(stored_name: str, prefix: str) -> str:
    rest = stored_name[len(prefix):] if stored_name.startswith(prefix) else stored_name
    for token in _KIND_TOKENS:
        if rest.startswith(f"{token}_"):
            return token
    return KIND_PHOTO


class MediaGallery:
    """Per-device media index over the files kept in the upload directory."""

    def __init__(self, upload_dir: str = UPLOAD_DIR) -> None:
        self.upload_dir = upload_dir
        self._items: dict[str, list[MediaItem]] = {}
        # Devices whose index was dropped on purpose; the disk scan must not bring them back.
        self._cleared: set[str] = set()
        self._lock = threading.RLock()

    def add(
        self,
        device_id: str,
        stored: StoredFile,
        kind: str,
        source_request_id: str | None = None,
    ) -> MediaItem:
        if kind not in MEDIA_KINDS:
            raise ValidationError(f"Unknown media kind {kind}")
        item = MediaItem(
            stored_name=stored.stored_name,
            original_name=stored.original_name,
            size_bytes=stored.size_bytes,
            uploaded_at=display_time(),
            kind=kind,
            url=file_url(stored.stored_name),
            source_request_id=source_request_id,
        )
        with self._lock:
            self._cleared.discard(device_id)
            items = self._items.setdefault(device_id, [])
            if kind in CAMERA_KINDS:
                items.insert(0, item)
                self._evict_camera_items(items)
            else:
                items.append(item)
        return item

    def _evict_camera_items(self, items: list[MediaItem]) -> None:
        camera_positions = [i for i, existing in enumerate(items) if existing.kind in CAMERA_KINDS]
        for position in reversed(camera_positions[CAMERA_HISTORY_LIMIT:]):
            del items[position]

    def _device_files(self, device_id: str) -> list[str]:
        prefix = device_file_prefix(device_id)
        try:
            return [name for name in os.listdir(self.upload_dir) if name.startswith(prefix)]
        except FileNotFoundError:
            return []

    def _scan_directory(self, device_id: str) -> list[MediaItem]:
        """Rebuild a gallery from files on disk, for uploads made before a restart."""
        prefix = device_file_prefix(device_id)
        found: list[tuple[float, MediaItem]] = []
        for name in self._device_files(device_id):
            path = os.path.join(self.upload_dir, name)
            try:
                stat = os.stat(path)
            except OSError:
                continue
            found.append(
                (
                    stat.st_mtime,
                    MediaItem(
                        stored_name=name,
                        original_name=name,
                        size_bytes=stat.st_size,
                        uploaded_at=display_time(stat.st_mtime),
                        kind=infer_kind(name, prefix),
                        url=file_url(name),
                    ),
                )
            )
        found.sort(key=lambda row: row[0], reverse=True)
        return [item for _, item in found]

    def list(self, device_id: str, kind: str | None = None) -> list[MediaItem]:
        with self._lock:
            items = list(self._items.get(device_id, ()))
            cleared = device_id in self._cleared
        if not items and not cleared:
            items = self._scan_directory(device_id)
        if kind:
            items = [item for item in items if item.kind == kind]
        return items

    def count(self, device_id: str) -> int:
        with self._lock:
            return len(self._items.get(device_id, ()))

    def _suppress_fallback(self, device_ids) -> None:
        # Only ids that still have files on disk need hiding from the scan.
        with self._lock:
            for device_id in device_ids:
                if self._device_files(device_id):
                    self._cleared.add(device_id)
                else:
                    self._cleared.discard(device_id)

    def remove(self, device_id: str, delete_files: bool = False) -> int:
        with self._lock:
            items = self._items.pop(device_id, [])
            self._cleared.add(device_id)
        if delete_files:
            self._delete_device_files(device_id)
        self._suppress_fallback([device_id])
        logger.info("Dropped %d gallery entries for device %s", len(items), device_id)
        return len(items)

    def clear_all(self, known_device_ids=(), delete_files: bool = False) -> None:
        with self._lock:
            device_ids = set(self._items) | set(known_device_ids) | set(self._cleared)
            self._items.clear()
            self._cleared.update(device_ids)
        if delete_files:
            for device_id in device_ids:
                self._delete_device_files(device_id)
        self._suppress_fallback(device_ids)

    def _delete_device_files(self, device_id: str) -> None:
        for name in self._device_files(device_id):
            try:
                os.remove(os.path.join(self.upload_dir, name))
            except OSError:
                logger.warning("Could not delete %s", name, exc_info=True)
