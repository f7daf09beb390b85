"""Tests for role resolution, trainer notifications and the realtime plumbing."""

from __future__ import annotations

import unittest
from unittest import mock

from messaging.errors import NotificationDispatchError
from messaging.schemas.conversation import Conversation
from messaging.schemas.events import ChangeEvent, conversation_channel
from messaging.schemas.message import Message
from messaging.services.notification_service import TrainerNotifier
from messaging.services.realtime import RealtimeSubscription
from messaging.services.role_service import AdminRole, RoleService, highest_admin_role, resolve_sender_roles
from messaging.utils.notifications import FcmPush, NoopPush
from messaging.utils.realtime_bus import LocalBus
from messaging.utils.toasts import ToastQueue

from fakes import T0, FakeRoleService


class _RoleRepository:
    def __init__(self, roles: dict[str, list[str]]) -> None:
        self.roles = roles

    async def get_roles(self, user_id: str) -> list[str]:
        if user_id == "broken":
            raise RuntimeError("lookup failed")
        return self.roles.get(user_id, [])


def _message(sender_id: str, sender_type: str = "admin") -> Message:
    return Message(id=f"m-{sender_id}", conversation_id="c1", sender_type=sender_type, sender_id=sender_id, created_at=T0)


class RoleServiceTests(unittest.IsolatedAsyncioTestCase):
    def test_highest_role(self) -> None:
        self.assertEqual(highest_admin_role(["admin", "superadmin"]), AdminRole.SUPERADMIN)
        self.assertEqual(highest_admin_role(["formateur", "admin"]), AdminRole.ADMIN)
        self.assertIsNone(highest_admin_role(["formateur"]))
        self.assertIsNone(highest_admin_role([]))

    async def test_service_reads_repository(self) -> None:
        service = RoleService(_RoleRepository({"u1": ["admin"], "u2": ["superadmin"]}))
        self.assertEqual(await service.get_highest_admin_role("u1"), AdminRole.ADMIN)
        self.assertEqual(await service.get_highest_admin_role("u2"), AdminRole.SUPERADMIN)
        self.assertIsNone(await service.get_highest_admin_role("u3"))

    async def test_resolve_skips_failures_and_non_admins(self) -> None:
        service = RoleService(_RoleRepository({"u1": ["admin"]}))
        messages = [_message("u1"), _message("broken"), _message("u9"), _message("f1", "formateur")]

        with self.assertLogs("messaging.services.role_service", level="WARNING"):
            roles = await resolve_sender_roles(service, messages)

        self.assertEqual(roles, {"u1": AdminRole.ADMIN})

    async def test_resolve_looks_up_each_sender_once(self) -> None:
        service = FakeRoleService({"u1": ["admin"]})
        await resolve_sender_roles(service, [_message("u1"), _message("u1"), _message("u1")])
        self.assertEqual(service.calls["u1"], 1)


class _DeviceRepository:
    def __init__(self, tokens: list[str]) -> None:
        self.tokens = tokens
        self.queries: list[tuple[str, str | None]] = []

    async def get_tokens(self, user_id: str, platform: str | None = None) -> list[str]:
        self.queries.append((user_id, platform))
        return self.tokens


class _RecordingPush:
    enabled = True

    def __init__(self) -> None:
        self.sent = []

    async def send_fcm(self, tokens, title, body, data=None) -> None:
        self.sent.append((tokens, title, body, data))


class TrainerNotifierTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.conversation = Conversation(id="c1", session_id="s1", type="formateur", participant_id="form-1", created_at=T0)
        self.message = Message(
            id="m1",
            conversation_id="c1",
            sender_type="admin",
            sender_id="admin-1",
            sender_name="Alice Admin",
            content="x" * 150,
            created_at=T0,
        )

    async def test_pushes_to_trainer_devices(self) -> None:
        devices = _DeviceRepository(["tok-1", "tok-2"])
        push = _RecordingPush()

        await TrainerNotifier(devices, push=push).notify_formateur(self.conversation, self.message)

        self.assertEqual(devices.queries, [("form-1", "fcm")])
        tokens, title, body, data = push.sent[0]
        self.assertEqual(tokens, ["tok-1", "tok-2"])
        self.assertEqual(title, "Nouveau message de Alice Admin")
        self.assertEqual(len(body), 100)
        self.assertEqual(data["conversationId"], "c1")
        self.assertEqual(data["sessionId"], "s1")

    async def test_disabled_push_does_nothing(self) -> None:
        devices = _DeviceRepository(["tok-1"])
        await TrainerNotifier(devices, push=NoopPush()).notify_formateur(self.conversation, self.message)
        self.assertEqual(devices.queries, [])


class FcmPushTests(unittest.IsolatedAsyncioTestCase):
    async def test_partial_failure_is_tolerated(self) -> None:
        with mock.patch("messaging.utils.notifications.FCMNotification") as client_cls:
            client_cls.return_value.notify.side_effect = [RuntimeError("bad token"), {"name": "ok"}]
            push = FcmPush("service-account.json", "project-1")
            with self.assertLogs("messaging.utils.notifications", level="WARNING"):
                await push.send_fcm(["bad", "good"], "titre", "corps")

        client_cls.assert_called_once_with(service_account_file="service-account.json", project_id="project-1")
        self.assertEqual(client_cls.return_value.notify.call_count, 2)

    async def test_total_failure_raises(self) -> None:
        with mock.patch("messaging.utils.notifications.FCMNotification") as client_cls:
            client_cls.return_value.notify.side_effect = RuntimeError("gateway down")
            push = FcmPush("service-account.json", "project-1")
            with self.assertLogs("messaging.utils.notifications", level="WARNING"):
                with self.assertRaises(NotificationDispatchError):
                    await push.send_fcm(["a", "b"], "titre", "corps")


class RealtimeTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.bus = LocalBus()
        self.received: list[ChangeEvent] = []
        self.subscription = RealtimeSubscription(self.bus, self.received.append)

    async def asyncTearDown(self) -> None:
        await self.subscription.close()

    def _event(self, conversation_id: str) -> str:
        row = _message("u1").model_dump(mode="json")
        return ChangeEvent(type="insert", conversation_id=conversation_id, row=row).model_dump_json()

    async def test_delivers_events_of_open_conversation(self) -> None:
        await self.subscription.open("c1")
        await self.bus.publish(conversation_channel("c1"), self._event("c1"))
        self.assertEqual([e.conversation_id for e in self.received], ["c1"])

    async def test_reopening_moves_the_channel(self) -> None:
        await self.subscription.open("c1")
        await self.subscription.open("c2")
        await self.bus.publish(conversation_channel("c1"), self._event("c1"))
        self.assertEqual(self.received, [])
        self.assertEqual(self.bus.subscriber_count(conversation_channel("c1")), 0)
        self.assertEqual(self.subscription.conversation_id, "c2")

    async def test_malformed_payload_is_dropped(self) -> None:
        await self.subscription.open("c1")
        with self.assertLogs("messaging.services.realtime", level="WARNING"):
            await self.bus.publish(conversation_channel("c1"), "{not json")
        self.assertEqual(self.received, [])

    async def test_mismatched_conversation_is_ignored(self) -> None:
        await self.subscription.open("c1")
        await self.bus.publish(conversation_channel("c1"), self._event("c2"))
        self.assertEqual(self.received, [])

    async def test_close_releases_the_channel(self) -> None:
        await self.subscription.open("c1")
        await self.subscription.close()
        self.assertFalse(self.subscription.is_open)
        self.assertEqual(self.bus.subscriber_count(conversation_channel("c1")), 0)


class ToastQueueTests(unittest.TestCase):
    def test_push_and_dismiss(self) -> None:
        toasts = ToastQueue()
        ok = toasts.success("Message envoyé")
        toasts.error("Erreur lors de l'envoi du message")
        self.assertEqual(toasts.texts("error"), ["Erreur lors de l'envoi du message"])
        toasts.dismiss(ok.id)
        self.assertEqual(toasts.texts(), ["Erreur lors de l'envoi du message"])
        toasts.clear()
        self.assertEqual(toasts.items, [])
