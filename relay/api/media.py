from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse

from relay.api.payloads import camelize
from relay.models.media import KIND_PHOTO, KIND_SCREENSHOT, MEDIA_KINDS, MediaItem
from relay.services.devices import require_device_id
from relay.services.errors import UploadError, ValidationError
from relay.services.storage import resolve_stored_file, save_upload
from relay.store import RelayStore

router = APIRouter(prefix="/api", tags=["media"])


def get_store(request: Request) -> RelayStore:
    return request.app.state.store


def media_payload(item: MediaItem) -> dict:
    return camelize(item)


def _upload(store: RelayStore, device_id: str | None, image: UploadFile | None, kind: str) -> dict:
    key = require_device_id(device_id)
    if image is None:
        raise UploadError("image file is required")
    stored = save_upload(image, key, kind, store.upload_dir)
    item = store.gallery.add(key, stored, kind)
    return {"success": True, "message": "File uploaded", "item": media_payload(item)}


@router.post("/upload-gallery")
def upload_gallery(
    device_id: str | None = Form(None, alias="deviceId"),
    image: UploadFile | None = File(None),
    store: RelayStore = Depends(get_store),
):
    return _upload(store, device_id, image, KIND_PHOTO)


@router.post("/upload-screenshot")
def upload_screenshot(
    device_id: str | None = Form(None, alias="deviceId"),
    image: UploadFile | None = File(None),
    store: RelayStore = Depends(get_store),
):
    return _upload(store, device_id, image, KIND_SCREENSHOT)


@router.get("/gallery/{device_id}")
def list_gallery(device_id: str, kind: str | None = None, store: RelayStore = Depends(get_store)):
    if kind and kind not in MEDIA_KINDS:
        raise ValidationError(f"kind must be one of {', '.join(MEDIA_KINDS)}")
    items = store.gallery.list(device_id, kind)
    return {"success": True, "deviceId": device_id, "count": len(items), "items": [media_payload(i) for i in items]}


@router.get("/screenshots/{device_id}")
def list_screenshots(device_id: str, store: RelayStore = Depends(get_store)):
    items = store.gallery.list(device_id, KIND_SCREENSHOT)
    return {"success": True, "deviceId": device_id, "count": len(items), "items": [media_payload(i) for i in items]}


@router.delete("/clear-gallery/{device_id}")
def clear_gallery(device_id: str, store: RelayStore = Depends(get_store)):
    removed = store.gallery.remove(device_id, delete_files=store.delete_files_on_clear)
    return {"success": True, "message": f"Gallery cleared for {device_id}", "removed": removed}


@router.get("/files/{stored_name}")
def get_file(stored_name: str, store: RelayStore = Depends(get_store)):
    return FileResponse(resolve_stored_file(stored_name, store.upload_dir))
