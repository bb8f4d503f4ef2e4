import math
import time
from datetime import date, datetime

# Epoch values above this are treated as milliseconds (Android clients send ms).
_MS_THRESHOLD = 10**11
# 9999-12-31T23:59:59Z, the last instant datetime can represent.
MAX_EPOCH_MS = 253_402_300_799_000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _bounded_ms(value: int | float) -> int:
    # Out-of-range client clocks fall back to now, like unparseable strings do.
    if isinstance(value, float) and not math.isfinite(value):
        return _now_ms()
    if not 0 <= value <= MAX_EPOCH_MS:
        return _now_ms()
    return int(value)


def epoch_ms(value=None) -> int:
    if value is None or value == "":
        return _now_ms()
    if isinstance(value, datetime):
        try:
            return _bounded_ms(value.timestamp() * 1000)
        except (OverflowError, OSError, ValueError):
            return _now_ms()
    if isinstance(value, (int, float)):
        return _bounded_ms(value if value > _MS_THRESHOLD else value * 1000)
    raw = str(value).strip()
    try:
        return epoch_ms(float(raw))
    except ValueError:
        pass
    try:
        return epoch_ms(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        return _now_ms()


def _local_datetime(value) -> datetime:
    try:
        return datetime.fromtimestamp(epoch_ms(value) / 1000)
    except (OverflowError, OSError, ValueError):
        return datetime.now()


def display_time(value=None) -> str:
    """Render an epoch (s or ms), datetime or ISO string as a local display timestamp."""
    moment = value if isinstance(value, datetime) else _local_datetime(value)
    return moment.strftime("%Y-%m-%d %H:%M:%S")


def is_today(value: int | None, today: date | None = None) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and not math.isfinite(value) or not 0 <= value <= MAX_EPOCH_MS:
        return False
    current = today or date.today()
    return _local_datetime(value).date() == current
