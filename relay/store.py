import logging
import os

from relay.models.device import Device
from relay.services.camera import CaptureRequestLedger
from relay.services.changes import ChangeLog
from relay.services.devices import DeviceRegistry
from relay.services.gallery import MediaGallery
from relay.services.storage import UPLOAD_DIR, ensure_storage
from relay.services.telemetry import TelemetryStore

logger = logging.getLogger(__name__)

DELETE_FILES_ON_CLEAR = os.getenv("RELAY_DELETE_FILES_ON_CLEAR", "0").strip().lower() in {"1", "true", "yes", "on"}


class RelayStore:
    """All in-memory state of one relay process.

    Built once per app and handed to the request handlers; it lives from
    process start to shutdown and is never persisted.
    """

    def __init__(self, upload_dir: str = UPLOAD_DIR, delete_files_on_clear: bool = DELETE_FILES_ON_CLEAR) -> None:
        self.upload_dir = upload_dir
        self.delete_files_on_clear = delete_files_on_clear
        ensure_storage(upload_dir)
        self.devices = DeviceRegistry()
        self.gallery = MediaGallery(upload_dir)
        self.camera = CaptureRequestLedger(self.devices, self.gallery)
        self.telemetry = TelemetryStore(self.devices)
        self.changes = ChangeLog()

    def counters(self, device_id: str) -> dict[str, int]:
        return {
            "locationCount": self.telemetry.location_count(device_id),
            "notificationCount": self.telemetry.notification_count(device_id),
            "galleryCount": self.gallery.count(device_id),
            "pendingCameraRequests": self.camera.pending_count(device_id),
            "galleryChangeCount": self.changes.count(device_id),
        }

    def device_summaries(self) -> list[tuple[Device, dict[str, int]]]:
        return self.devices.list(self.counters)

    def remove_device(self, device_id: str) -> bool:
        # Not transactional: each step is idempotent, so a retry finishes a partial cleanup.
        existed = self.devices.remove(device_id)
        self.camera.remove_device(device_id)
        self.telemetry.clear(device_id)
        self.gallery.remove(device_id, delete_files=self.delete_files_on_clear)
        self.changes.clear(device_id)
        logger.info("Removed device %s (existed=%s)", device_id, existed)
        return existed

    def clear(self) -> None:
        known = [device.id for device, _ in self.devices.list()]
        self.devices.clear()
        self.camera.clear()
        self.telemetry.clear_all()
        self.gallery.clear_all(known, delete_files=self.delete_files_on_clear)
        self.changes.clear_all()
        logger.info("Cleared all devices (%d)", len(known))
