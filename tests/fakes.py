"""In-memory stand-ins for the MongoDB repositories and the role service."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId

from messaging.schemas.auth import AuthContext
from messaging.services.message_store import MessageStore
from messaging.services.role_service import AdminRole, highest_admin_role
from messaging.utils.realtime_bus import LocalBus

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

ADMIN = AuthContext(user_id="admin-1", role="admin", display_name="Alice Admin")
SUPERADMIN = AuthContext(user_id="super-1", role="superadmin", display_name="Sam Super")
FORMATEUR = AuthContext(user_id="form-1", role="formateur", display_name="Fanny Formatrice")
APPRENANT = AuthContext(user_id="app-1", role="apprenant", display_name="Paul Apprenant")


class _Clock:
    def __init__(self) -> None:
        self._now = T0

    def tick(self) -> datetime:
        self._now += timedelta(minutes=1)
        return self._now


class FakeConversationRepository:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self._clock = _Clock()

    def add(self, session_id: str, type: str, participant_id: Optional[str] = None) -> str:
        conversation_id = str(ObjectId())
        self.rows[conversation_id] = {
            "_id": conversation_id,
            "session_id": session_id,
            "type": type,
            "participant_id": participant_id,
            "created_at": self._clock.tick(),
        }
        return conversation_id

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    async def list_for_session(self, session_id, conversation_type=None, participant_id=None, include_groups=False):
        self._call("list_for_session")
        items = []
        for row in self.rows.values():
            if row["session_id"] != session_id:
                continue
            if conversation_type:
                own = row["type"] == conversation_type and (
                    participant_id is None or row["participant_id"] == participant_id
                )
                if not own and not (include_groups and row["type"] == "groupe"):
                    continue
            items.append(dict(row))
        return sorted(items, key=lambda r: r["created_at"], reverse=True)

    async def get(self, conversation_id):
        self._call("get")
        row = self.rows.get(conversation_id)
        return dict(row) if row else None

    async def delete(self, conversation_id):
        self._call("delete")
        return self.rows.pop(conversation_id, None) is not None


class FakeMessageRepository:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []
        # conversation id -> event that must be set before list_by_conversation returns
        self.gates: Dict[str, asyncio.Event] = {}
        self._clock = _Clock()

    def add(self, conversation_id: str, sender_type: str, content: str, sender_id: Optional[str] = None, **extra) -> str:
        message_id = str(ObjectId())
        row = {
            "_id": message_id,
            "conversation_id": conversation_id,
            "sender_type": sender_type,
            "sender_id": sender_id,
            "sender_name": extra.pop("sender_name", None),
            "content": content,
            "created_at": self._clock.tick(),
            "edited_at": None,
            "deleted_at": None,
            "deleted_by": None,
            "read_at": None,
        }
        row.update(extra)
        self.rows[message_id] = row
        return message_id

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def _matches_sender(self, row, sender_type, exclude):
        return (row["sender_type"] != sender_type) if exclude else (row["sender_type"] == sender_type)

    async def list_by_conversation(self, conversation_id):
        self._call("list_by_conversation")
        gate = self.gates.get(conversation_id)
        if gate is not None:
            await gate.wait()
        items = [dict(r) for r in self.rows.values() if r["conversation_id"] == conversation_id]
        return sorted(items, key=lambda r: r["created_at"])

    async def get(self, message_id):
        self._call("get")
        row = self.rows.get(message_id)
        return dict(row) if row else None

    async def insert(self, conversation_id, sender_type, content, sender_id=None, sender_name=None):
        self._call("insert")
        message_id = self.add(conversation_id, sender_type, content, sender_id=sender_id, sender_name=sender_name)
        return dict(self.rows[message_id])

    async def update_content(self, message_id, content):
        self._call("update_content")
        row = self.rows.get(message_id)
        if row is None or row["deleted_at"] is not None:
            return None
        row.update(content=content, edited_at=self._clock.tick())
        return dict(row)

    async def soft_delete(self, message_id, deleter_id):
        self._call("soft_delete")
        row = self.rows.get(message_id)
        if row is None:
            return None
        row.update(deleted_at=self._clock.tick(), deleted_by=deleter_id)
        return dict(row)

    async def mark_read(self, conversation_id, sender_type, exclude=False):
        self._call("mark_read")
        marked = []
        for row in self.rows.values():
            if row["conversation_id"] == conversation_id and row["read_at"] is None and self._matches_sender(row, sender_type, exclude):
                row["read_at"] = self._clock.tick()
                marked.append(dict(row))
        return marked

    async def count_unread(self, conversation_id, sender_type, exclude=False):
        self._call("count_unread")
        return sum(
            1
            for row in self.rows.values()
            if row["conversation_id"] == conversation_id
            and row["read_at"] is None
            and row["deleted_at"] is None
            and self._matches_sender(row, sender_type, exclude)
        )

    async def last_message(self, conversation_id):
        self._call("last_message")
        items = [r for r in self.rows.values() if r["conversation_id"] == conversation_id and r["deleted_at"] is None]
        if not items:
            return None
        return dict(max(items, key=lambda r: r["created_at"]))

    async def delete_by_conversation(self, conversation_id):
        self._call("delete_by_conversation")
        ids = [k for k, r in self.rows.items() if r["conversation_id"] == conversation_id]
        for k in ids:
            del self.rows[k]
        return len(ids)


class FakeRoleService:
    def __init__(self, roles: Optional[Dict[str, List[str]]] = None) -> None:
        self.roles = roles or {}
        self.calls: Counter = Counter()

    async def get_highest_admin_role(self, user_id: str) -> Optional[AdminRole]:
        self.calls[user_id] += 1
        return highest_admin_role(self.roles.get(user_id, []))


class RecordingNotifier:
    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent = []
        self.error = error

    async def notify_formateur(self, conversation, message) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append((conversation.id, message.id))


class Backend:
    """Store over fake repositories, wired to an in-process bus."""

    def __init__(self, notifier=None) -> None:
        self.conversations = FakeConversationRepository()
        self.messages = FakeMessageRepository()
        self.bus = LocalBus()
        self.notifier = notifier
        self.store = MessageStore(self.messages, self.conversations, bus=self.bus, notifier=notifier)
