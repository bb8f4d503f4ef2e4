from dataclasses import dataclass


@dataclass
class LocationFix:
    latitude: float
    longitude: float
    captured_at: int
    accuracy: float | None = None
    speed: float | None = None
    bearing: float | None = None
    altitude: float | None = None
    source: str = "unknown"
    kind: str = "periodic"


@dataclass
class Notification:
    id: str
    package_name: str
    app_label: str
    title: str
    body: str
    captured_at: int
    category: str | None = None
    priority: int | None = None
