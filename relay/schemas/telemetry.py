from relay.schemas.device import CamelModel


class LocationUpdateIn(CamelModel):
    device_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    speed: float | None = None
    bearing: float | None = None
    altitude: float | None = None
    provider: str | None = None
    update_type: str | None = None
    timestamp: int | float | str | None = None


class NotificationUpdateIn(CamelModel):
    device_id: str | None = None
    title: str | None = None
    text: str | None = None
    package_name: str | None = None
    app_name: str | None = None
    notification_id: str | None = None
    category: str | None = None
    priority: int | None = None
    timestamp: int | float | str | None = None
