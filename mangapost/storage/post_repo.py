from __future__ import annotations
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from mangapost.errors import PersistenceError
from mangapost.models import Post, PostDraft
from mangapost.storage.kv_store import POSTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


class PostRepository:
    """Insert-only post collection; the one mutation is flipping ``notified``."""

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def save(self, draft: PostDraft) -> Post:
        raise NotImplementedError

    async def list_all(self) -> List[Post]:
        raise NotImplementedError

    async def get(self, post_id: int) -> Optional[Post]:
        raise NotImplementedError

    async def mark_notified(self, post_id: int) -> Post:
        raise NotImplementedError

    async def clear(self) -> int:
        raise NotImplementedError


class Base(DeclarativeBase):
    pass


class PostRow(Base):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    cover_image: Mapped[str] = mapped_column(Text, nullable=False)
    dest_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_adult: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def to_post(self) -> Post:
        created = self.created_at
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return Post(
            id=self.id,
            title=self.title,
            description=self.description,
            tags=list(self.tags or []),
            cover_image=self.cover_image,
            dest_url=self.dest_url,
            is_adult=self.is_adult,
            created_at=created.isoformat(),
            notified=self.notified,
        )


def _engine_for(database_url: str):
    kwargs: Dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        # in-memory sqlite has to share one connection across worker threads
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


class SqlPostRepository(PostRepository):
    def __init__(self, database_url: str):
        self._database_url = database_url
        self._engine = None
        self._sessions: Optional[sessionmaker[Session]] = None

    async def start(self) -> None:
        if self._sessions:
            return
        await asyncio.to_thread(self._start_sync)

    def _start_sync(self) -> None:
        try:
            self._engine = _engine_for(self._database_url)
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Cannot open database: {exc}") from exc
        self._sessions = sessionmaker(self._engine, expire_on_commit=False)

    async def close(self) -> None:
        if self._engine is not None:
            await asyncio.to_thread(self._engine.dispose)
            self._engine = None
            self._sessions = None

    async def _run(self, fn, *args):
        if not self._sessions:
            raise PersistenceError("SqlPostRepository not started")
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as exc:
            logger.error("Database call %s failed: %s", fn.__name__, exc)
            raise PersistenceError(str(exc)) from exc

    async def save(self, draft: PostDraft) -> Post:
        return await self._run(self._save_sync, draft)

    def _save_sync(self, draft: PostDraft) -> Post:
        with self._sessions.begin() as session:
            row = PostRow(
                title=draft.title,
                description=draft.description,
                tags=list(draft.tags),
                cover_image=draft.cover_image,
                dest_url=draft.dest_url,
                is_adult=draft.is_adult,
                created_at=datetime.now(timezone.utc),
                notified=False,
            )
            session.add(row)
            session.flush()
            return row.to_post()

    async def list_all(self) -> List[Post]:
        return await self._run(self._list_sync)

    def _list_sync(self) -> List[Post]:
        with self._sessions() as session:
            rows = session.scalars(select(PostRow).order_by(PostRow.id.desc())).all()
            return [r.to_post() for r in rows]

    async def get(self, post_id: int) -> Optional[Post]:
        return await self._run(self._get_sync, post_id)

    def _get_sync(self, post_id: int) -> Optional[Post]:
        with self._sessions() as session:
            row = session.get(PostRow, post_id)
            return row.to_post() if row else None

    async def mark_notified(self, post_id: int) -> Post:
        return await self._run(self._mark_notified_sync, post_id)

    def _mark_notified_sync(self, post_id: int) -> Post:
        with self._sessions.begin() as session:
            row = session.get(PostRow, post_id)
            if row is None:
                raise PersistenceError(f"Post {post_id} not found")
            row.notified = True
            return row.to_post()

    async def clear(self) -> int:
        return await self._run(self._clear_sync)

    def _clear_sync(self) -> int:
        with self._sessions.begin() as session:
            result = session.execute(delete(PostRow))
            return result.rowcount or 0


class LocalPostRepository(PostRepository):
    """Posts kept newest-first as a JSON list inside a key-value store."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._lock = asyncio.Lock()

    async def _load(self) -> List[Post]:
        raw = await self._store.get(POSTS_KEY, [])
        if not isinstance(raw, list):
            logger.warning("Stored post list is not a list, ignoring it")
            return []
        posts: List[Post] = []
        for item in raw:
            try:
                posts.append(Post.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed stored post: %s", exc)
        return posts

    async def _store_posts(self, posts: List[Post]) -> None:
        await self._store.set(POSTS_KEY, [p.to_dict() for p in posts])

    async def save(self, draft: PostDraft) -> Post:
        async with self._lock:
            posts = await self._load()
            post_id = int(time.time() * 1000)
            if posts:
                post_id = max(post_id, max(p.id for p in posts) + 1)
            post = Post.from_draft(draft, post_id=post_id)
            await self._store_posts([post] + posts)
            return post

    async def list_all(self) -> List[Post]:
        return await self._load()

    async def get(self, post_id: int) -> Optional[Post]:
        for post in await self._load():
            if post.id == post_id:
                return post
        return None

    async def mark_notified(self, post_id: int) -> Post:
        async with self._lock:
            posts = await self._load()
            for post in posts:
                if post.id == post_id:
                    post.notified = True
                    await self._store_posts(posts)
                    return post
        raise PersistenceError(f"Post {post_id} not found")

    async def clear(self) -> int:
        async with self._lock:
            count = len(await self._load())
            await self._store.delete(POSTS_KEY)
            return count
