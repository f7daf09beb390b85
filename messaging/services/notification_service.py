import logging

from messaging.repositories.device_repository import DeviceRepository
from messaging.schemas.conversation import Conversation
from messaging.schemas.message import Message
from messaging.utils.notifications import get_push


logger = logging.getLogger(__name__)


class TrainerNotifier:
    """Pushes admin messages to the trainer's registered devices."""

    def __init__(self, device_repo: DeviceRepository, push=None) -> None:
        self._device_repo = device_repo
        self._push = push

    async def notify_formateur(self, conversation: Conversation, message: Message) -> None:
        if not conversation.participant_id:
            return
        push = self._push or await get_push()
        if not getattr(push, "enabled", False):
            return
        tokens = await self._device_repo.get_tokens(conversation.participant_id, platform="fcm")
        await push.send_fcm(
            tokens,
            title=f"Nouveau message de {message.sender_name or 'Admin'}",
            body=message.content[:100],
            data={
                "messageId": message.id,
                "conversationId": conversation.id,
                "sessionId": conversation.session_id,
                "senderName": message.sender_name or "Admin",
            },
        )
