from fastapi import APIRouter, Depends, status

from messaging.repositories.device_repository import DeviceRepository
from messaging.schemas.auth import AuthContext
from messaging.schemas.device import Device, DeviceRegistration
from messaging.utils.dependencies import get_current_viewer, get_device_repository


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_device(
    body: DeviceRegistration,
    viewer: AuthContext = Depends(get_current_viewer),
    repo: DeviceRepository = Depends(get_device_repository),
):
    """Attach a push token to the viewer; trainers receive admin messages on it."""
    doc = await repo.register(viewer.user_id, body.platform, body.token)
    return Device.model_validate(doc).model_dump(mode="json")
