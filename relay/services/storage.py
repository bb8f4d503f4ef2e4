import os
import re
import time
from fastapi import UploadFile

from relay.models.media import StoredFile
from relay.services.errors import NotFoundError, UploadError

UPLOAD_DIR = os.getenv("RELAY_UPLOAD_DIR", "storage/uploads")
MAX_UPLOAD_BYTES = int(os.getenv("RELAY_MAX_UPLOAD_BYTES", str(15 * 1024 * 1024)))
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
# Some Android upload stacks send every part as octet-stream.
ALLOWED_GENERIC_TYPES = {"", "application/octet-stream"}


def ensure_storage(upload_dir: str = UPLOAD_DIR) -> None:
    os.makedirs(upload_dir, exist_ok=True)


def device_file_prefix(device_id: str) -> str:
    # Percent-encode everything but [A-Za-z0-9-] so distinct ids never share a prefix
    # and the "_" separator cannot appear inside the encoded id.
    safe_device = re.sub(
        r"[^A-Za-z0-9-]",
        lambda m: "".join(f"%{byte:02X}" for byte in m.group().encode("utf-8")),
        device_id.strip(),
    )
    return f"{safe_device or 'device'}_"


def _validate_type(filename: str, content_type: str | None) -> str:
    _, ext = os.path.splitext(filename.lower())
    if ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise UploadError("Unsupported image format. Use JPG/JPEG/PNG/WEBP.")
    media_type = (content_type or "").strip().lower()
    if media_type not in ALLOWED_GENERIC_TYPES and not media_type.startswith("image/"):
        raise UploadError(f"Unsupported content type {media_type}. Only images are accepted.")
    return ext


def save_upload(file: UploadFile, device_id: str, kind: str, upload_dir: str = UPLOAD_DIR) -> StoredFile:
    ensure_storage(upload_dir)
    original_name = os.path.basename((file.filename or "upload.jpg").strip()) or "upload.jpg"
    ext = _validate_type(original_name, file.content_type)
    content = file.file.read()
    if not content:
        raise UploadError("Empty file cannot be uploaded.")
    size = len(content)
    if size > MAX_UPLOAD_BYTES:
        raise UploadError(f"File exceeds the {MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit.")
    safe_name, _ = os.path.splitext(original_name)
    safe_name = "".join(ch for ch in safe_name if ch.isalnum() or ch in {"-", "_"}).strip() or "image"
    stored_name = f"{device_file_prefix(device_id)}{kind}_{int(time.time() * 1000)}_{safe_name}{ext}"
    path = os.path.join(upload_dir, stored_name)
    with open(path, "wb") as f:
        f.write(content)
    return StoredFile(
        path=path.replace("\\", "/"),
        stored_name=stored_name,
        original_name=original_name,
        size_bytes=size,
        content_type=file.content_type,
    )


def resolve_stored_file(stored_name: str, upload_dir: str = UPLOAD_DIR) -> str:
    name = os.path.basename(stored_name or "")
    if not name or name != stored_name:
        raise NotFoundError("File not found")
    path = os.path.join(upload_dir, name)
    if not os.path.isfile(path):
        raise NotFoundError("File not found")
    return path
