import asyncio
import logging
from typing import Dict, List, Optional

from pyfcm import FCMNotification

from messaging.config import get_settings
from messaging.errors import NotificationDispatchError


logger = logging.getLogger(__name__)


class NoopPush:

    enabled = False

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        return


class FcmPush:

    enabled = True

    def __init__(self, service_account_file: str, project_id: str) -> None:
        self._client = FCMNotification(service_account_file=service_account_file, project_id=project_id)

    async def send_fcm(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None) -> None:
        if not tokens:
            return
        failures = 0
        for token in tokens:
            try:
                # pyfcm is sync
                await asyncio.to_thread(
                    self._client.notify,
                    fcm_token=token,
                    notification_title=title,
                    notification_body=body,
                    data_payload=data or {},
                )
            except Exception:
                failures += 1
                logger.warning("FCM delivery failed for one device", exc_info=True)
        if failures == len(tokens):
            raise NotificationDispatchError(f"FCM delivery failed for all {failures} device(s)")


_push = None


async def get_push():
    global _push
    if _push is not None:
        return _push
    settings = get_settings()
    if not settings.fcm_service_account_file or not settings.fcm_project_id:
        _push = NoopPush()
    else:
        _push = FcmPush(settings.fcm_service_account_file, settings.fcm_project_id)
    return _push
