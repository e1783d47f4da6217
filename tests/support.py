from datetime import datetime, timedelta, timezone
from pathlib import Path
import tempfile

from now_working.attendance import AttendanceEngine
from now_working.db import Database
from now_working.directory import DirectoryService
from now_working.identity import IdentityResolver


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)

    def set(self, *args):
        self.now = datetime(*args, tzinfo=timezone.utc)


class DatabaseMixin:
    """Fresh SQLite file per test plus engine, resolver and directory over it."""

    def make_database(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.database = Database(Path(self._tmp.name) / "test.db")
        self.clock = FakeClock(datetime(2024, 5, 10, 9, 0, tzinfo=timezone.utc))
        self.engine = AttendanceEngine(self.database, clock=self.clock)
        self.resolver = IdentityResolver(self.database)
        self.directory = DirectoryService(self.database)

    async def seed(self):
        """Alice (Slack U1, Chatwork 101) owns 'acme'; Bob (U2) is an active member."""

        self.alice = await self.directory.register_user(
            "Alice", "alice@example.com", slack_user_id="U1", chatwork_user_id="101"
        )
        self.bob = await self.directory.register_user("Bob", "bob@example.com", slack_user_id="U2")
        self.acme = await self.directory.create_organization("Acme", "acme", self.alice.id)
        membership = await self.directory.invite(self.bob.id, self.acme.id)
        await self.directory.accept_invitation(membership.id)
