from dataclasses import dataclass

KIND_PHOTO = "photo"
KIND_SCREENSHOT = "screenshot"
KIND_FRONT_CAMERA = "front_camera"
KIND_BACK_CAMERA = "back_camera"
MEDIA_KINDS = (KIND_PHOTO, KIND_SCREENSHOT, KIND_FRONT_CAMERA, KIND_BACK_CAMERA)
CAMERA_KINDS = {KIND_FRONT_CAMERA, KIND_BACK_CAMERA}


@dataclass(frozen=True)
class StoredFile:
    """Descriptor of an upload already written to the upload directory."""

    path: str
    stored_name: str
    original_name: str
    size_bytes: int
    content_type: str | None = None


@dataclass
class MediaItem:
    stored_name: str
    original_name: str
    size_bytes: int
    uploaded_at: str
    kind: str
    url: str
    source_request_id: str | None = None
