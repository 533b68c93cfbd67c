from typing import List

import pytest

from mangapost.errors import NotificationError
from mangapost.services.auth import AdminAccount
from mangapost.services.publisher import Publisher
from mangapost.services.telegram_client import Notifier
from mangapost.storage.kv_store import MemoryStore
from mangapost.storage.post_repo import LocalPostRepository

ADMIN_PASSWORD = "s3cret-pass"


class FakeNotifier(Notifier):
    """Records every publish call into a shared event log."""

    def __init__(self, events: List[str], *, fail: bool = False, link: str = "https://t.me/hi0anime/1"):
        self.events = events
        self.fail = fail
        self.link = link
        self.calls = []

    async def publish(self, post, caption):
        self.events.append("notify")
        self.calls.append((post, caption))
        if self.fail:
            raise NotificationError("chat not found")
        return self.link


class RecordingRepo(LocalPostRepository):
    def __init__(self, store, events: List[str]):
        super().__init__(store)
        self.events = events

    async def save(self, draft):
        self.events.append("save")
        return await super().save(draft)


@pytest.fixture
def events():
    return []


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def account(store):
    return AdminAccount(store, admin_password=ADMIN_PASSWORD)


@pytest.fixture
def repo(store, events):
    return RecordingRepo(store, events)


@pytest.fixture
def notifier(events):
    return FakeNotifier(events)


@pytest.fixture
def publisher(account, repo, notifier):
    return Publisher(account=account, repo=repo, notifier=notifier)


@pytest.fixture
def payload():
    return {
        "name": "One Piece Chapter 100",
        "description": "Luffy reaches the Grand Line.",
        "tags": ["fantasy", " romance "],
        "coverUrl": "https://example.com/cover.jpg",
        "destUrl": "https://telegra.ph/one-piece-100",
        "adminPass": ADMIN_PASSWORD,
    }


@pytest.fixture
def make_notifier(events):
    def _make(**kwargs):
        return FakeNotifier(events, **kwargs)
    return _make


@pytest.fixture
def admin_password():
    return ADMIN_PASSWORD
