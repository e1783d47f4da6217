import unittest
from unittest.mock import AsyncMock

from now_working.adapters import ChatworkAdapter, SlackAdapter
from now_working.commands import Command
from now_working.errors import StoreUnavailable
from now_working.replies import (
    ALREADY_CHECKED_IN,
    NO_ORGANIZATION,
    NOBODY_WORKING,
    NOT_CHECKED_IN,
    REGISTRATION_REQUIRED,
    SOMETHING_WENT_WRONG,
    VACATION_COMING_SOON,
    Replies,
)

from support import DatabaseMixin


def slack_form(command, text="", user_id="U1"):
    return {"command": command, "text": text, "user_id": user_id, "user_name": "alice"}


def chatwork_payload(body, account_id=101, room_id=5000, event_type="message_created"):
    return {
        "webhook_event_type": event_type,
        "webhook_event": {
            "message_id": "1",
            "room_id": room_id,
            "account_id": account_id,
            "body": body,
        },
    }


class SlackAdapterTests(DatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.make_database()
        await self.seed()
        self.adapter = SlackAdapter(self.engine, self.resolver, Replies(mention_prefix="@"))

    async def test_checkin_echoes_note(self):
        reply = await self.adapter.handle_command(slack_form("/checkin", "from home"))
        self.assertEqual(reply, "@Alice checked in!\n> from home")
        self.assertIsNotNone(await self.engine.active_session(self.alice.id, self.acme.id))

    async def test_checkin_twice(self):
        await self.adapter.handle_command(slack_form("/checkin"))
        reply = await self.adapter.handle_command(slack_form("/checkin"))
        self.assertEqual(reply, ALREADY_CHECKED_IN)

    async def test_checkout_reports_hours(self):
        await self.adapter.handle_command(slack_form("/checkin", "office"))
        self.clock.advance(hours=8, minutes=30)
        reply = await self.adapter.handle_command(slack_form("/checkout"))
        self.assertEqual(reply, "@Alice checked out!\nWorked: 8.50 hours")

    async def test_checkout_without_checkin(self):
        reply = await self.adapter.handle_command(slack_form("/checkout"))
        self.assertEqual(reply, NOT_CHECKED_IN)

    async def test_status_roster(self):
        await self.adapter.handle_command(slack_form("/checkin", "office"))
        self.clock.advance(minutes=15)
        await self.adapter.handle_command(slack_form("/checkin", user_id="U2"))
        reply = await self.adapter.handle_command(slack_form("/status"))
        self.assertEqual(
            reply,
            "Currently working (2):\n• @Alice (since 09:00) - office\n• @Bob (since 09:15)",
        )

    async def test_status_leaves_out_suspended_members(self):
        await self.adapter.handle_command(slack_form("/checkin", "office"))
        await self.adapter.handle_command(slack_form("/checkin", "remote", user_id="U2"))
        await self.directory.suspend_member(self.bob.id, self.acme.id)
        reply = await self.adapter.handle_command(slack_form("/status"))
        self.assertEqual(reply, "Currently working (1):\n• @Alice (since 09:00) - office")

    async def test_status_empty(self):
        reply = await self.adapter.handle_command(slack_form("/status"))
        self.assertEqual(reply, NOBODY_WORKING)

    async def test_vacation_stub(self):
        reply = await self.adapter.handle_command(slack_form("/vacation", "2024-06-01"))
        self.assertEqual(reply, VACATION_COMING_SOON)

    async def test_unregistered_user(self):
        reply = await self.adapter.handle_command(slack_form("/checkin", user_id="U404"))
        self.assertEqual(reply, REGISTRATION_REQUIRED)

    async def test_user_without_organization(self):
        await self.directory.register_user("Carol", slack_user_id="U3")
        reply = await self.adapter.handle_command(slack_form("/checkin", user_id="U3"))
        self.assertEqual(reply, NO_ORGANIZATION)

    async def test_unknown_organization_selector(self):
        reply = await self.adapter.handle_command(slack_form("/checkin", "org:nope hi"))
        self.assertIn("nope", reply)
        self.assertIsNone(await self.engine.active_session(self.alice.id, self.acme.id))

    async def test_unknown_command_is_silent(self):
        self.assertEqual(await self.adapter.handle_command(slack_form("/lunch")), "")

    async def test_store_failure_renders_generic_message(self):
        self.engine.store = AsyncMock()
        self.engine.store.create_session.side_effect = StoreUnavailable("disk full")
        with self.assertLogs("now_working.adapters", level="ERROR"):
            reply = await self.adapter.dispatch("U1", Command(name="checkin"))
        self.assertEqual(reply, SOMETHING_WENT_WRONG)


class ChatworkAdapterTests(DatabaseMixin, unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.make_database()
        await self.seed()
        self.adapter = ChatworkAdapter(self.engine, self.resolver, Replies())

    async def test_checkin_returns_room_and_reply(self):
        result = await self.adapter.handle_webhook(chatwork_payload("/checkin office"))
        self.assertEqual(result, ("5000", "Alice checked in!\n> office"))

    async def test_legacy_account_payload(self):
        payload = chatwork_payload("/status")
        del payload["webhook_event"]["account_id"]
        payload["webhook_event"]["account"] = {"account_id": 101}
        room_id, reply = await self.adapter.handle_webhook(payload)
        self.assertEqual(reply, NOBODY_WORKING)

    async def test_other_event_types_ignored(self):
        self.assertIsNone(await self.adapter.handle_webhook(chatwork_payload("/checkin", event_type="mention_to_me")))

    async def test_chatter_ignored(self):
        self.assertIsNone(await self.adapter.handle_webhook(chatwork_payload("good morning")))

    async def test_shares_engine_with_slack(self):
        slack = SlackAdapter(self.engine, self.resolver, Replies(mention_prefix="@"))
        await slack.handle_command(slack_form("/checkin"))
        _, reply = await self.adapter.handle_webhook(chatwork_payload("/checkin"))
        self.assertEqual(reply, ALREADY_CHECKED_IN)
        _, reply = await self.adapter.handle_webhook(chatwork_payload("/checkout"))
        self.assertTrue(reply.startswith("Alice checked out!"))

    async def test_unregistered_chatwork_account(self):
        _, reply = await self.adapter.handle_webhook(chatwork_payload("/checkin", account_id=999))
        self.assertEqual(reply, REGISTRATION_REQUIRED)


if __name__ == "__main__":
    unittest.main()
