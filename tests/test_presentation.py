"""Tests for bubbles, layout selection and the assembled messaging page."""

from __future__ import annotations

import unittest
from datetime import timedelta, timezone

from messaging.presentation.bubble import (
    DELETED_PLACEHOLDER,
    EDITED_SUFFIX,
    Tone,
    badge_for,
    bubble_text,
    render_bubble,
)
from messaging.presentation.conversation_list import render_conversation_list
from messaging.presentation.layout import (
    Layout,
    MobileNavigator,
    MobileView,
    ScrollController,
    choose_layout,
)
from messaging.presentation.page import MessagingPage, render_text
from messaging.schemas.conversation import Conversation
from messaging.schemas.message import Message
from messaging.services.moderation import ModerationEngine
from messaging.services.role_service import AdminRole
from messaging.services.view_model import MessagingViewModel

from fakes import ADMIN, FORMATEUR, SUPERADMIN, T0, Backend, FakeRoleService


def _message(**fields) -> Message:
    values = dict(
        id="m1",
        conversation_id="c1",
        sender_type="formateur",
        sender_id="form-1",
        sender_name="Fanny Martin",
        content="Bonjour à tous",
        created_at=T0,
    )
    values.update(fields)
    return Message(**values)


class BubbleTests(unittest.TestCase):
    def test_deleted_message_shows_placeholder_only(self) -> None:
        view = render_bubble(_message(sender_id=ADMIN.user_id, deleted_at=T0, edited_at=T0), ADMIN, {})
        self.assertEqual(view.body, DELETED_PLACEHOLDER)
        self.assertTrue(view.italic)
        self.assertEqual(view.tone, Tone.MUTED)
        self.assertFalse(view.edited)
        self.assertEqual(view.actions, ())
        self.assertNotIn("Bonjour", bubble_text(view))

    def test_own_message_is_right_aligned_with_actions(self) -> None:
        view = render_bubble(_message(sender_id=FORMATEUR.user_id), FORMATEUR, {})
        self.assertEqual(view.align, "right")
        self.assertEqual(view.actions, ("edit", "delete"))
        self.assertEqual(view.sender_label, "Fanny Martin (vous)")

    def test_foreign_message_for_superadmin_offers_delete(self) -> None:
        view = render_bubble(_message(), SUPERADMIN, {})
        self.assertEqual(view.align, "left")
        self.assertEqual(view.actions, ("delete",))

    def test_edited_marker(self) -> None:
        view = render_bubble(_message(edited_at=T0), ADMIN, {})
        self.assertTrue(view.edited)
        self.assertIn(EDITED_SUFFIX, bubble_text(view))

    def test_editing_replaces_body_with_editor(self) -> None:
        view = render_bubble(
            _message(sender_id=ADMIN.user_id),
            ADMIN,
            {},
            editing_message_id="m1",
            edit_buffer="  ",
        )
        self.assertIsNone(view.body)
        self.assertFalse(view.editor.can_confirm)
        self.assertEqual(view.actions, ())

    def test_time_uses_timezone(self) -> None:
        view = render_bubble(_message(), ADMIN, {}, tz=timezone(timedelta(hours=2)))
        self.assertEqual(view.time, "11:00")

    def test_badges(self) -> None:
        roles = {"super-1": AdminRole.SUPERADMIN}
        self.assertEqual(badge_for(_message(sender_type="admin", sender_id="super-1"), roles).tone, Tone.SUPERADMIN)
        self.assertEqual(badge_for(_message(sender_type="admin", sender_id="admin-1"), roles).label, "Admin")
        self.assertEqual(badge_for(_message(), roles).label, "Formateur")
        self.assertEqual(badge_for(_message(sender_type="apprenant"), roles).tone, Tone.APPRENANT)


class LayoutTests(unittest.TestCase):
    def test_breakpoint(self) -> None:
        self.assertEqual(choose_layout(767, breakpoint=768), Layout.MOBILE)
        self.assertEqual(choose_layout(768, breakpoint=768), Layout.DESKTOP)
        self.assertEqual(choose_layout(1200, breakpoint=1024), Layout.DESKTOP)

    def test_navigator_transitions(self) -> None:
        nav = MobileNavigator()
        self.assertEqual(nav.view, MobileView.LIST)
        chat = nav.open_chat()
        self.assertEqual((chat.enter_from, chat.offset_px), ("right", 20))
        back = nav.back()
        self.assertEqual((back.view, back.enter_from, back.offset_px), (MobileView.LIST, "left", -20))

    def test_navigator_starts_on_chat_with_selection(self) -> None:
        self.assertEqual(MobileNavigator(has_selection=True).view, MobileView.CHAT)

    def test_scroll_is_instant_then_smooth(self) -> None:
        scroll = ScrollController()
        scroll.on_conversation_change("c1")
        self.assertIsNone(scroll.on_messages_changed(0))
        self.assertEqual(scroll.on_messages_changed(3), "instant")
        self.assertEqual(scroll.on_messages_changed(4), "smooth")
        scroll.on_conversation_change("c2")
        self.assertEqual(scroll.on_messages_changed(1), "instant")

    def test_hidden_chat_does_not_consume_initial_scroll(self) -> None:
        scroll = ScrollController()
        scroll.on_conversation_change("c1")
        self.assertIsNone(scroll.on_messages_changed(3, visible=False))
        self.assertEqual(scroll.on_messages_changed(3), "instant")


class PageTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.backend = Backend()
        self.conv = self.backend.conversations.add("s1", "formateur", participant_id="form-1")
        self.backend.messages.add(self.conv, "formateur", "Une question", sender_id="form-1", sender_name="Fanny Martin")
        gone = self.backend.messages.add(self.conv, "admin", "secret", sender_id="admin-1", sender_name="Alice Admin")
        self.backend.messages.rows[gone]["deleted_at"] = T0

    async def _page(self, width: int, viewer=ADMIN, view_mode="admin") -> MessagingPage:
        vm = MessagingViewModel(self.backend.store, FakeRoleService(), viewer, view_mode, "s1", bus=self.backend.bus)
        self.addAsyncCleanup(vm.close)
        engine = ModerationEngine(self.backend.store, vm, viewer)
        return MessagingPage(vm, engine, width, tz=timezone.utc)

    async def test_desktop_admin_shows_list_and_chat(self) -> None:
        page = await self._page(1280)
        await page.open()
        screen = page.render()

        self.assertEqual(screen.layout, Layout.DESKTOP)
        self.assertEqual(len(screen.conversation_list), 1)
        self.assertTrue(screen.header.can_delete_conversation)
        self.assertEqual(len(screen.bubbles), 2)
        self.assertEqual(screen.scroll, "instant")
        text = render_text(screen)
        self.assertIn("Une question", text)
        self.assertIn(DELETED_PLACEHOLDER, text)
        self.assertNotIn("secret", text)

    async def test_scroll_is_reported_once_per_change(self) -> None:
        page = await self._page(1280)
        await page.open()
        page.render()
        self.assertIsNone(page.render().scroll)
        await page.view_model.send_message("réponse")
        self.assertEqual(page.render().scroll, "smooth")

    async def test_mobile_navigation(self) -> None:
        page = await self._page(375)
        await page.open()

        screen = page.render()
        self.assertEqual(screen.mobile_view, MobileView.LIST)
        self.assertEqual(screen.bubbles, [])
        self.assertIsNone(screen.scroll)

        await page.select(self.conv)
        screen = page.render()
        self.assertEqual(screen.mobile_view, MobileView.CHAT)
        self.assertEqual(screen.transition.enter_from, "right")
        self.assertTrue(screen.header.show_back)
        self.assertEqual(screen.scroll, "instant")

        page.back()
        self.assertEqual(page.render().mobile_view, MobileView.LIST)

    async def test_resize_switches_layout(self) -> None:
        page = await self._page(1280)
        self.assertEqual(page.resize(500), Layout.MOBILE)

    async def test_formateur_sees_administration_header(self) -> None:
        page = await self._page(1280, viewer=FORMATEUR, view_mode="formateur")
        await page.open()
        screen = page.render()
        self.assertIsNone(screen.conversation_list)
        self.assertEqual(screen.header.title, "Administration")
        self.assertFalse(screen.header.can_delete_conversation)

    async def test_empty_state(self) -> None:
        page = await self._page(1280)
        page.view_model.session_id = "other"
        await page.open()
        screen = page.render()
        self.assertEqual(screen.empty_state.title, "Aucune conversation")
        self.assertEqual(render_text(screen).splitlines()[0], "Aucune conversation")

    async def test_composer_sends_through_view_model(self) -> None:
        page = await self._page(1280)
        await page.open()
        page.composer.set_draft("Merci")
        self.assertTrue(await page.composer.submit())
        self.assertEqual(page.view_model.messages[-1].content, "Merci")
        self.assertEqual(page.render().composer.draft, "")


class ConversationListTests(unittest.TestCase):
    def test_non_admin_titles_use_formation(self) -> None:
        conversation = Conversation(id="c1", session_id="s1", type="groupe", created_at=T0, formation_title="Python avancé")
        items = render_conversation_list([conversation], "c1", "apprenant")
        self.assertEqual(items[0].title, "Python avancé")
        self.assertEqual(items[0].subtitle, "Message groupé")
        self.assertTrue(items[0].selected)
