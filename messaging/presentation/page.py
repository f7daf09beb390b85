"""The messaging page: picks a layout and assembles the render model.

``MessagingPage`` owns the presentation-only state (layout, mobile navigation,
scroll behaviour, composer) and delegates data to the view model and the
moderation engine. ``render()`` returns a ``MessagingScreen`` and
``render_text()`` flattens it for logs, tooling and tests.
"""

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import List, Optional, Tuple

from messaging.presentation.bubble import BubbleView, bubble_text, render_bubble
from messaging.presentation.composer import Composer
from messaging.presentation.conversation_list import (
    ConversationItemView,
    conversation_icon,
    render_conversation_list,
)
from messaging.presentation.layout import (
    Layout,
    MobileNavigator,
    MobileView,
    ScrollBehavior,
    ScrollController,
    Transition,
    choose_layout,
)
from messaging.schemas.conversation import Conversation
from messaging.services.moderation import ConfirmationPrompt, ModerationEngine
from messaging.services.view_model import MessagingViewModel, Phase
from messaging.utils.toasts import Toast


_SUBTITLES = {
    "formateur": "Formateur de la session",
    "groupe": "Message envoyé à tous les apprenants",
    "apprenant": "Apprenant inscrit à la session",
}


@dataclass(frozen=True)
class HeaderView:
    title: str
    subtitle: str
    icon: str
    can_delete_conversation: bool
    show_back: bool = False


@dataclass(frozen=True)
class EmptyStateView:
    title: str
    description: str
    can_start_conversation: bool


@dataclass(frozen=True)
class ComposerView:
    draft: str
    placeholder: str
    height_px: int
    can_submit: bool
    disabled: bool
    sending: bool


@dataclass
class MessagingScreen:
    layout: Layout
    loading: bool = False
    empty_state: Optional[EmptyStateView] = None
    conversation_list: Optional[List[ConversationItemView]] = None
    header: Optional[HeaderView] = None
    bubbles: List[BubbleView] = field(default_factory=list)
    empty_messages: Optional[str] = None
    composer: Optional[ComposerView] = None
    mobile_view: Optional[MobileView] = None
    transition: Optional[Transition] = None
    scroll: Optional[ScrollBehavior] = None
    prompt: Optional[ConfirmationPrompt] = None
    toasts: List[Toast] = field(default_factory=list)


class MessagingPage:

    def __init__(
        self,
        view_model: MessagingViewModel,
        engine: ModerationEngine,
        viewport_width: int,
        can_start_conversation: bool = False,
        tz: Optional[tzinfo] = None,
    ) -> None:
        self.view_model = view_model
        self.engine = engine
        self.layout = choose_layout(viewport_width)
        self.navigator = MobileNavigator()
        self.composer = Composer(view_model.send_message)
        self.can_start_conversation = can_start_conversation
        self._tz = tz
        self._scroll = ScrollController()
        self._rendered: Tuple[Optional[str], Tuple[str, ...]] = (None, ())

    def resize(self, viewport_width: int) -> Layout:
        self.layout = choose_layout(viewport_width)
        return self.layout

    async def open(self, initial_conversation_id: Optional[str] = None) -> None:
        await self.view_model.load_conversations(initial_conversation_id)
        self.navigator = MobileNavigator(
            has_selection=bool(initial_conversation_id) and self.view_model.active_conversation_id is not None
        )

    async def select(self, conversation_id: str) -> bool:
        self.engine.cancel_edit()
        if self.layout == Layout.MOBILE:
            self.navigator.open_chat()
        return await self.view_model.select_conversation(conversation_id)

    def back(self) -> Transition:
        return self.navigator.back()

    async def confirm(self) -> bool:
        prompt = self.engine.prompt
        done = await self.engine.confirm()
        if done and prompt is not None and prompt.kind == "conversation":
            self.navigator.back()
        return done

    def render(self) -> MessagingScreen:
        vm = self.view_model
        screen = MessagingScreen(layout=self.layout, prompt=self.engine.prompt, toasts=vm.toasts.items)

        if vm.loading_conversations:
            screen.loading = True
            return screen
        if not vm.conversations:
            screen.empty_state = self._empty_state()
            return screen

        chat_visible = self.layout == Layout.DESKTOP or self.navigator.view == MobileView.CHAT
        if self.layout == Layout.MOBILE:
            screen.mobile_view = self.navigator.view
            screen.transition = self.navigator.last_transition
            if self.navigator.view == MobileView.LIST:
                screen.conversation_list = render_conversation_list(
                    vm.conversations, vm.active_conversation_id, vm.view_mode
                )
        elif vm.view_mode == "admin":
            screen.conversation_list = render_conversation_list(
                vm.conversations, vm.active_conversation_id, vm.view_mode
            )

        if chat_visible:
            self._render_chat(screen)
        screen.scroll = self._scroll_behavior(chat_visible)
        return screen

    def _render_chat(self, screen: MessagingScreen) -> None:
        vm = self.view_model
        conversation = vm.selected_conversation
        if conversation is not None:
            screen.header = self._header(conversation)
        pending = set(vm.pending_message_ids)
        screen.bubbles = [
            render_bubble(
                message,
                vm.viewer,
                vm.sender_roles,
                editing_message_id=self.engine.editing_message_id,
                edit_buffer=self.engine.edit_buffer,
                pending=message.id in pending,
                tz=self._tz,
            )
            for message in vm.messages
        ]
        if not vm.messages and vm.phase == Phase.READY:
            screen.empty_messages = "Aucun message dans cette conversation"
            if vm.view_mode == "formateur":
                screen.empty_messages += "\nVous pouvez envoyer un message à l'administration"
        self.composer.disabled = conversation is None
        screen.composer = ComposerView(
            draft=self.composer.draft,
            placeholder=self.composer.placeholder,
            height_px=self.composer.height_px,
            can_submit=self.composer.can_submit,
            disabled=self.composer.disabled or self.composer.sending,
            sending=self.composer.sending,
        )

    def _header(self, conversation: Conversation) -> HeaderView:
        vm = self.view_model
        if vm.view_mode == "admin":
            title = conversation.participant_name or ""
            subtitle = _SUBTITLES[conversation.type]
            icon = conversation_icon(conversation)
        else:
            title = "Administration"
            subtitle = "Messages avec l'équipe administrative"
            icon = "shield-check"
        return HeaderView(
            title=title,
            subtitle=subtitle,
            icon=icon,
            can_delete_conversation=self.engine.can_delete_conversation,
            show_back=self.layout == Layout.MOBILE,
        )

    def _empty_state(self) -> EmptyStateView:
        if self.view_model.view_mode == "admin":
            return EmptyStateView(
                title="Aucune conversation",
                description="Commencez une nouvelle conversation avec le formateur ou les apprenants.",
                can_start_conversation=self.can_start_conversation,
            )
        return EmptyStateView(
            title="Pas de messages",
            description="L'administrateur n'a pas encore initié de conversation pour cette session.",
            can_start_conversation=False,
        )

    def _scroll_behavior(self, chat_visible: bool) -> Optional[ScrollBehavior]:
        vm = self.view_model
        self._scroll.on_conversation_change(vm.active_conversation_id)
        snapshot = (vm.active_conversation_id, tuple(m.id for m in vm.messages))
        if snapshot == self._rendered:
            return None
        behavior = self._scroll.on_messages_changed(len(vm.messages), visible=chat_visible)
        # a hidden chat has not been seen yet, keep the change pending
        if chat_visible:
            self._rendered = snapshot
        return behavior


def render_text(screen: MessagingScreen) -> str:
    lines: List[str] = []
    if screen.loading:
        return "Chargement..."
    if screen.empty_state is not None:
        return f"{screen.empty_state.title}\n{screen.empty_state.description}"
    if screen.conversation_list is not None:
        lines.append("Conversations")
        for item in screen.conversation_list:
            marker = ">" if item.selected else " "
            unread = f" ({item.unread_count})" if item.unread_count else ""
            lines.append(f"{marker} {item.title} - {item.subtitle}{unread}")
    if screen.header is not None:
        back = "< " if screen.header.show_back else ""
        lines.append(f"{back}{screen.header.title} | {screen.header.subtitle}")
    for bubble in screen.bubbles:
        lines.append(bubble_text(bubble))
    if screen.empty_messages:
        lines.append(screen.empty_messages)
    if screen.composer is not None:
        lines.append(f"> {screen.composer.draft or screen.composer.placeholder}")
    return "\n".join(lines)
