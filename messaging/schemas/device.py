from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from messaging.models.device import PushPlatform


class DeviceRegistration(BaseModel):

    platform: PushPlatform
    token: str = Field(min_length=1, max_length=4096)


class Device(BaseModel):

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    user_id: str
    platform: PushPlatform
    token: str
    last_seen_at: datetime
