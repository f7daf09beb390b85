"""Message composer: draft, auto-growing height, Enter to send, emoji insertion."""

from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from messaging.schemas.message import Message


MIN_HEIGHT_PX = 40
MAX_HEIGHT_PX = 120
LINE_HEIGHT_PX = 20
# characters per visual line before the draft wraps
WRAP_WIDTH = 60

EMOJI_CATEGORIES: Dict[str, List[str]] = {
    "Smileys": ["😀", "😃", "😄", "😁", "😅", "😂", "🤣", "😊", "😇", "🙂", "😉", "😌", "😍", "🥰", "😘", "😋", "😜", "🤗", "🤔", "😐", "🙄", "😬"],
    "Gestes": ["👍", "👎", "👌", "✌️", "🤞", "👋", "👏", "🙌", "🤝", "🙏", "💪"],
    "Cœurs": ["❤️", "🧡", "💛", "💚", "💙", "💜", "🖤", "🤍", "💔", "💕"],
    "Objets": ["⭐", "🌟", "✨", "🔥", "💯", "✅", "❌", "⚠️", "📌", "🎯", "💡", "📅", "📧", "📝", "📋", "📎", "🔗", "📁"],
}


class KeyAction(str, Enum):

    SUBMIT = "submit"
    NEWLINE = "newline"
    NONE = "none"


SendCallback = Callable[[str], Awaitable[Optional[Message]]]


class Composer:

    def __init__(self, send: SendCallback, placeholder: str = "Écrivez votre message...") -> None:
        self._send = send
        self.placeholder = placeholder
        self.draft = ""
        self.sending = False
        self.disabled = False

    def set_draft(self, text: str) -> None:
        self.draft = text

    def insert_emoji(self, glyph: str) -> None:
        # appended at the end of the draft, cursor position is not tracked
        if self.disabled or self.sending:
            return
        self.draft += glyph

    @property
    def can_submit(self) -> bool:
        return not self.disabled and not self.sending and bool(self.draft.strip())

    @property
    def height_px(self) -> int:
        lines = 0
        for line in self.draft.split("\n"):
            lines += max(1, -(-len(line) // WRAP_WIDTH))
        return max(MIN_HEIGHT_PX, min(lines * LINE_HEIGHT_PX, MAX_HEIGHT_PX))

    async def handle_key(self, key: str, shift: bool = False) -> KeyAction:
        if key != "Enter":
            return KeyAction.NONE
        if shift:
            self.draft += "\n"
            return KeyAction.NEWLINE
        await self.submit()
        return KeyAction.SUBMIT

    async def submit(self) -> bool:
        """Send the draft; the draft is cleared only once the send went through."""
        if not self.can_submit:
            return False
        self.sending = True
        try:
            sent = await self._send(self.draft)
        finally:
            self.sending = False
        if sent is None:
            return False
        self.draft = ""
        return True
