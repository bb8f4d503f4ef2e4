from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys (``deviceId``); snake_case is accepted too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeviceRegisterIn(CamelModel):
    # deviceId is required, but a missing one must surface as a 400 from the
    # registry rather than a 422 from request parsing.
    device_id: str | None = None
    device_name: str | None = None
    battery_level: int | None = Field(None, ge=0, le=100)


class BatteryUpdateIn(CamelModel):
    device_id: str | None = None
    battery_level: int | None = Field(None, ge=0, le=100)
    device_name: str | None = None
    timestamp: int | float | str | None = None


class DeviceDeleteIn(CamelModel):
    device_id: str | None = None
