import logging
import os
from fastapi import APIRouter, Body, Depends, File, Form, Request, UploadFile

from relay.api.media import media_payload
from relay.api.payloads import capture_request_payload
from relay.schemas.media import CameraRequestIn
from relay.services.camera import GALLERY_KIND_BY_FACING
from relay.services.devices import require_device_id
from relay.services.errors import InternalError, NotFoundError, RelayError, UploadError
from relay.services.storage import save_upload
from relay.store import RelayStore

router = APIRouter(prefix="/api", tags=["camera"])
logger = logging.getLogger(__name__)


def get_store(request: Request) -> RelayStore:
    return request.app.state.store


def _create_request(store: RelayStore, payload: CameraRequestIn | None, facing: str) -> dict:
    payload = payload or CameraRequestIn()
    capture = store.camera.request_capture(
        payload.device_id,
        facing,
        requester_id=payload.requester_id,
        request_id=payload.request_id,
    )
    return {
        "success": True,
        "message": f"{facing.capitalize()} camera capture requested",
        "requestId": capture.request_id,
        "request": capture_request_payload(capture),
    }


def _abandon_upload(store: RelayStore, request_id: str, stored, reason: str) -> None:
    try:
        store.camera.mark_failed(request_id, reason)
    except NotFoundError:
        # The device was removed mid-upload; its saved file belongs to nobody now.
        if stored is not None:
            try:
                os.remove(stored.path)
            except OSError:
                logger.warning("Could not delete orphaned upload %s", stored.path, exc_info=True)


def _fulfill_upload(
    store: RelayStore,
    facing: str,
    device_id: str | None,
    request_id: str | None,
    image: UploadFile | None,
) -> dict:
    key = require_device_id(device_id)
    # Unknown or finished requests are rejected before anything touches the disk.
    capture = store.camera.check_upload(request_id, key, facing)
    stored = None
    try:
        if image is None:
            raise UploadError("image file is required")
        stored = save_upload(image, key, GALLERY_KIND_BY_FACING[facing], store.upload_dir)
        capture = store.camera.fulfill(capture.request_id, stored)
    except RelayError as exc:
        _abandon_upload(store, capture.request_id, stored, exc.message)
        raise
    except Exception as exc:
        logger.exception("Upload for capture request %s failed", capture.request_id)
        _abandon_upload(store, capture.request_id, stored, str(exc) or exc.__class__.__name__)
        raise InternalError(str(exc) or "Upload failed") from exc

    item = next(
        (i for i in store.gallery.list(key) if i.source_request_id == capture.request_id),
        None,
    )
    return {
        "success": True,
        "message": f"{facing.capitalize()} camera image uploaded",
        "request": capture_request_payload(capture),
        "item": media_payload(item) if item else None,
    }


@router.post("/request-front-camera")
def request_front_camera(payload: CameraRequestIn | None = Body(None), store: RelayStore = Depends(get_store)):
    return _create_request(store, payload, "front")


@router.post("/request-back-camera")
def request_back_camera(payload: CameraRequestIn | None = Body(None), store: RelayStore = Depends(get_store)):
    return _create_request(store, payload, "back")


@router.post("/upload-front-camera")
def upload_front_camera(
    device_id: str | None = Form(None, alias="deviceId"),
    request_id: str | None = Form(None, alias="requestId"),
    image: UploadFile | None = File(None),
    store: RelayStore = Depends(get_store),
):
    return _fulfill_upload(store, "front", device_id, request_id, image)


@router.post("/upload-back-camera")
def upload_back_camera(
    device_id: str | None = Form(None, alias="deviceId"),
    request_id: str | None = Form(None, alias="requestId"),
    image: UploadFile | None = File(None),
    store: RelayStore = Depends(get_store),
):
    return _fulfill_upload(store, "back", device_id, request_id, image)


@router.get("/check-camera-request/{request_id}")
def check_camera_request(request_id: str, store: RelayStore = Depends(get_store)):
    capture = store.camera.get_status(request_id)
    return {"success": True, "status": capture.status, "request": capture_request_payload(capture)}


@router.get("/pending-camera-requests/{device_id}")
def pending_camera_requests(
    device_id: str,
    facing: str | None = None,
    store: RelayStore = Depends(get_store),
):
    pending = store.camera.list_pending(device_id, facing)
    return {
        "success": True,
        "deviceId": device_id,
        "count": len(pending),
        "requests": [capture_request_payload(capture) for capture in pending],
    }
