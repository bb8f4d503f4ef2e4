from relay.schemas.device import CamelModel


class CameraRequestIn(CamelModel):
    device_id: str | None = None
    requester_id: str | None = None
    request_id: str | None = None


class GalleryChangeIn(CamelModel):
    device_id: str | None = None
    action: str | None = None
    path: str | None = None
    kind: str | None = None
    timestamp: int | float | str | None = None
