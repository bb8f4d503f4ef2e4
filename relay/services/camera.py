"""Capture request ledger.

The child device cannot be reached directly, so the server acts as a mailbox:

1. the parent creates a request (``pending``),
2. the child polls ``list_pending`` and takes the picture,
3. the child uploads it against the request id and the request becomes
   ``captured`` (or ``failed`` when the upload could not be processed),
4. the parent polls ``get_status`` until the request is terminal.

Requests never expire and terminal requests are never mutated again; a new
picture needs a new request id.
"""

import copy
import logging
import secrets
import threading
import time

from relay.models.capture_request import (
    FACINGS,
    STATUS_CAPTURED,
    STATUS_FAILED,
    STATUS_PENDING,
    CaptureRequest,
)
from relay.models.media import KIND_BACK_CAMERA, KIND_FRONT_CAMERA, StoredFile
from relay.services.devices import DeviceRegistry, require_device_id
from relay.services.errors import NotFoundError, ValidationError
from relay.services.gallery import MediaGallery
from relay.services.timefmt import display_time

logger = logging.getLogger(__name__)

GALLERY_KIND_BY_FACING = {"front": KIND_FRONT_CAMERA, "back": KIND_BACK_CAMERA}


def normalize_facing(facing: str | None) -> str:
    value = (facing or "").strip().lower()
    if value not in FACINGS:
        raise ValidationError("facing must be 'front' or 'back'")
    return value


def generate_request_id(facing: str) -> str:
    return f"{facing}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class CaptureRequestLedger:
    def __init__(self, registry: DeviceRegistry, gallery: MediaGallery) -> None:
        self._registry = registry
        self._gallery = gallery
        self._requests: dict[str, CaptureRequest] = {}
        self._lock = threading.RLock()

    def request_capture(
        self,
        device_id: str | None,
        facing: str,
        requester_id: str | None = None,
        request_id: str | None = None,
    ) -> CaptureRequest:
        key = require_device_id(device_id)
        facing = normalize_facing(facing)
        if not self._registry.exists(key):
            raise NotFoundError(f"Device {key} not found")

        with self._lock:
            supplied = (request_id or "").strip()
            if supplied and supplied in self._requests:
                raise ValidationError(f"requestId {supplied} already exists")
            new_id = supplied
            while not new_id or new_id in self._requests:
                new_id = generate_request_id(facing)
            request = CaptureRequest(
                request_id=new_id,
                device_id=key,
                facing=facing,
                requester_id=(requester_id or "").strip() or None,
                requested_at=display_time(),
            )
            self._requests[new_id] = request
        logger.info("Capture request %s (%s camera) created for device %s", new_id, facing, key)
        return copy.deepcopy(request)

    def list_pending(self, device_id: str, facing: str | None = None) -> list[CaptureRequest]:
        wanted = normalize_facing(facing) if facing else None
        with self._lock:
            return [
                copy.deepcopy(request)
                for request in self._requests.values()
                if request.device_id == device_id
                and request.status == STATUS_PENDING
                and (wanted is None or request.facing == wanted)
            ]

    def pending_count(self, device_id: str) -> int:
        return len(self.list_pending(device_id))

    def get_status(self, request_id: str) -> CaptureRequest:
        with self._lock:
            return copy.deepcopy(self._get(request_id))

    def _get(self, request_id: str | None) -> CaptureRequest:
        request = self._requests.get((request_id or "").strip())
        if request is None:
            raise NotFoundError(f"Capture request {request_id} not found")
        return request

    def check_upload(self, request_id: str | None, device_id: str, facing: str) -> CaptureRequest:
        """Verify an upload may fulfil ``request_id``; mutates nothing."""
        if not (request_id or "").strip():
            raise ValidationError("requestId is required")
        with self._lock:
            request = self._get(request_id)
            if request.is_terminal:
                raise ValidationError(f"Capture request {request.request_id} is already {request.status}")
            if request.device_id != device_id:
                raise ValidationError(f"Capture request {request.request_id} belongs to another device")
            if request.facing != facing:
                raise ValidationError(
                    f"Capture request {request.request_id} is for the {request.facing} camera"
                )
            return copy.deepcopy(request)

    def fulfill(self, request_id: str, stored: StoredFile) -> CaptureRequest:
        with self._lock:
            request = self._get(request_id)
            if request.is_terminal:
                raise ValidationError(f"Capture request {request.request_id} is already {request.status}")
            try:
                self._gallery.add(
                    request.device_id,
                    stored,
                    GALLERY_KIND_BY_FACING[request.facing],
                    source_request_id=request.request_id,
                )
            except Exception as exc:
                self._fail(request, str(exc) or exc.__class__.__name__)
                raise
            request.status = STATUS_CAPTURED
            request.image = stored
            request.captured_at = display_time()
            logger.info("Capture request %s fulfilled with %s", request.request_id, stored.stored_name)
            return copy.deepcopy(request)

    def mark_failed(self, request_id: str, reason: str) -> CaptureRequest:
        with self._lock:
            request = self._get(request_id)
            if not request.is_terminal:
                self._fail(request, reason)
            return copy.deepcopy(request)

    def _fail(self, request: CaptureRequest, reason: str) -> None:
        request.status = STATUS_FAILED
        request.failure_reason = reason
        request.captured_at = None
        logger.warning("Capture request %s failed: %s", request.request_id, reason)

    def remove_device(self, device_id: str) -> int:
        with self._lock:
            doomed = [rid for rid, request in self._requests.items() if request.device_id == device_id]
            for rid in doomed:
                del self._requests[rid]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._requests.clear()
