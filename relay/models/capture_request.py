from dataclasses import dataclass

from relay.models.media import StoredFile

FACINGS = ("front", "back")

STATUS_PENDING = "pending"
STATUS_CAPTURED = "captured"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = {STATUS_CAPTURED, STATUS_FAILED}


@dataclass
class CaptureRequest:
    request_id: str
    device_id: str
    facing: str
    requested_at: str
    requester_id: str | None = None
    status: str = STATUS_PENDING
    captured_at: str | None = None
    image: StoredFile | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
