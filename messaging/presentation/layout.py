"""Desktop/mobile layout selection and the mobile navigation stack."""

from dataclasses import dataclass
from enum import Enum
from typing import Literal, Optional

from messaging.config import get_settings


class Layout(str, Enum):

    DESKTOP = "desktop"
    MOBILE = "mobile"


class MobileView(str, Enum):

    LIST = "list"
    CHAT = "chat"


ScrollBehavior = Literal["instant", "smooth"]


def choose_layout(viewport_width: int, breakpoint: Optional[int] = None) -> Layout:
    if breakpoint is None:
        breakpoint = get_settings().mobile_breakpoint
    return Layout.MOBILE if viewport_width < breakpoint else Layout.DESKTOP


@dataclass(frozen=True)
class Transition:
    view: MobileView
    # the list slides in from the left, the chat from the right
    enter_from: Literal["left", "right"]
    offset_px: int


_ENTER = {
    MobileView.LIST: Transition(MobileView.LIST, "left", -20),
    MobileView.CHAT: Transition(MobileView.CHAT, "right", 20),
}


class MobileNavigator:
    """Two-view stack: list pushes to chat, back pops to list."""

    def __init__(self, has_selection: bool = False) -> None:
        self.view = MobileView.CHAT if has_selection else MobileView.LIST
        self.last_transition: Optional[Transition] = None

    def open_chat(self) -> Transition:
        return self._go(MobileView.CHAT)

    def back(self) -> Transition:
        return self._go(MobileView.LIST)

    def _go(self, view: MobileView) -> Transition:
        self.view = view
        self.last_transition = _ENTER[view]
        return self.last_transition


class ScrollController:
    """First render of a conversation jumps to the bottom, later changes scroll smoothly."""

    def __init__(self) -> None:
        self._conversation_id: Optional[str] = None
        self._initial = True

    def on_conversation_change(self, conversation_id: Optional[str]) -> None:
        if conversation_id != self._conversation_id:
            self._conversation_id = conversation_id
            self._initial = True

    def on_messages_changed(self, message_count: int, visible: bool = True) -> Optional[ScrollBehavior]:
        if message_count == 0 or not visible:
            return None
        behavior: ScrollBehavior = "instant" if self._initial else "smooth"
        self._initial = False
        return behavior
