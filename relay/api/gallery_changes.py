from fastapi import APIRouter, Body, Depends, Request

from relay.api.payloads import camelize
from relay.schemas.media import GalleryChangeIn
from relay.services.devices import require_device_id
from relay.store import RelayStore

router = APIRouter(prefix="/api/gallery-changes", tags=["gallery-changes"])


def get_store(request: Request) -> RelayStore:
    return request.app.state.store


@router.post("")
def record_change(payload: GalleryChangeIn | None = Body(None), store: RelayStore = Depends(get_store)):
    payload = payload or GalleryChangeIn()
    device_id = require_device_id(payload.device_id)
    event = store.changes.record(device_id, payload.action, payload.path, payload.kind, payload.timestamp)
    return {"success": True, "change": camelize(event), "count": store.changes.count(device_id)}


@router.get("/{device_id}")
def list_changes(device_id: str, store: RelayStore = Depends(get_store)):
    events = store.changes.list(device_id)
    return {"success": True, "deviceId": device_id, "count": len(events), "changes": camelize(events)}


@router.delete("/{device_id}")
def clear_changes(device_id: str, store: RelayStore = Depends(get_store)):
    store.changes.clear(device_id)
    return {"success": True, "message": f"Gallery changes cleared for {device_id}"}
