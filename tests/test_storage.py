import json

import pytest

from mangapost.errors import PersistenceError
from mangapost.models import PostDraft, parse_tags
from mangapost.storage.kv_store import POSTS_KEY, JsonFileStore, MemoryStore
from mangapost.storage.post_repo import LocalPostRepository, SqlPostRepository


def make_draft(title="Title", **kwargs):
    data = dict(
        title=title,
        description="Description",
        tags=["fantasy", "romance"],
        cover_image="https://example.com/c.jpg",
        dest_url="https://telegra.ph/x",
        is_adult=False,
    )
    data.update(kwargs)
    return PostDraft(**data)


def test_parse_tags_from_string_and_list():
    assert parse_tags("fantasy, romance,, ,action ") == ["fantasy", "romance", "action"]
    assert parse_tags([" a ", "", "b"]) == ["a", "b"]
    assert parse_tags(None) == []


class TestJsonFileStore:
    @pytest.mark.asyncio
    async def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileStore(path)
        await store.set("admin_hash", "abc")
        await store.set("posts", [{"id": 1}])

        reopened = JsonFileStore(path)
        assert await reopened.get("admin_hash") == "abc"
        assert await reopened.get("posts") == [{"id": 1}]

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileStore(path)
        await store.set("a", 1)
        await store.set("b", 2)

        await store.delete("a")
        assert json.loads(path.read_text(encoding="utf-8")) == {"b": 2}

        await store.clear()
        assert await store.get("b") is None
        assert json.loads(path.read_text(encoding="utf-8")) == {}

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        store = JsonFileStore(path)
        assert await store.get("anything", "default") == "default"

    @pytest.mark.asyncio
    async def test_unwritable_path_raises_persistence_error(self, tmp_path):
        store = JsonFileStore(tmp_path / "missing-dir" / "state.json")
        with pytest.raises(PersistenceError):
            await store.set("a", 1)
        assert await store.get("a") is None

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_value(self, tmp_path):
        path = tmp_path / "state.json"
        store = JsonFileStore(path)
        await store.set("a", 1)

        with pytest.raises(PersistenceError):
            await store.set("a", object())
        assert await store.get("a") == 1
        assert json.loads(path.read_text(encoding="utf-8")) == {"a": 1}


class TestLocalPostRepository:
    @pytest.mark.asyncio
    async def test_save_assigns_unique_ids_newest_first(self):
        repo = LocalPostRepository(MemoryStore())
        first = await repo.save(make_draft("first"))
        second = await repo.save(make_draft("second"))

        assert second.id > first.id
        assert [p.title for p in await repo.list_all()] == ["second", "first"]
        assert first.notified is False
        assert first.created_at

    @pytest.mark.asyncio
    async def test_mark_notified_and_get(self):
        repo = LocalPostRepository(MemoryStore())
        post = await repo.save(make_draft())

        updated = await repo.mark_notified(post.id)
        assert updated.notified is True
        assert (await repo.get(post.id)).notified is True
        assert await repo.get(post.id + 1000) is None

    @pytest.mark.asyncio
    async def test_mark_notified_unknown(self):
        repo = LocalPostRepository(MemoryStore())
        with pytest.raises(PersistenceError):
            await repo.mark_notified(42)

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self):
        store = MemoryStore()
        repo = LocalPostRepository(store)
        await repo.save(make_draft())
        await repo.save(make_draft())

        assert await repo.clear() == 2
        assert await repo.list_all() == []
        assert await store.get(POSTS_KEY) is None

    @pytest.mark.asyncio
    async def test_failed_save_is_not_listed(self, tmp_path):
        repo = LocalPostRepository(JsonFileStore(tmp_path / "missing-dir" / "state.json"))
        with pytest.raises(PersistenceError):
            await repo.save(make_draft())
        assert await repo.list_all() == []

    @pytest.mark.asyncio
    async def test_malformed_entries_are_skipped(self):
        store = MemoryStore({POSTS_KEY: [{"id": 1}, "junk"]})
        repo = LocalPostRepository(store)
        assert await repo.list_all() == []


class TestSqlPostRepository:
    @pytest.mark.asyncio
    async def test_save_list_get(self, tmp_path):
        repo = SqlPostRepository(f"sqlite:///{tmp_path / 'posts.db'}")
        await repo.start()
        try:
            first = await repo.save(make_draft("first", is_adult=True))
            second = await repo.save(make_draft("second", tags=["a"]))

            posts = await repo.list_all()
            assert [p.id for p in posts] == [second.id, first.id]
            assert posts[1].tags == ["fantasy", "romance"]
            assert posts[1].is_adult is True

            fetched = await repo.get(first.id)
            assert fetched.title == "first"
            assert fetched.notified is False
        finally:
            await repo.close()

    @pytest.mark.asyncio
    async def test_mark_notified_and_clear(self):
        repo = SqlPostRepository("sqlite://")
        await repo.start()
        try:
            post = await repo.save(make_draft())
            assert (await repo.mark_notified(post.id)).notified is True
            with pytest.raises(PersistenceError):
                await repo.mark_notified(post.id + 1)

            assert await repo.clear() == 1
            assert await repo.list_all() == []
        finally:
            await repo.close()

    @pytest.mark.asyncio
    async def test_not_started(self):
        repo = SqlPostRepository("sqlite://")
        with pytest.raises(PersistenceError):
            await repo.save(make_draft())
