from __future__ import annotations
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mangapost.errors import AuthError, NotificationError, PersistenceError, PublishError, ValidationError
from mangapost.models import Post, PostDraft, parse_tags
from mangapost.services.auth import AdminAccount
from mangapost.services.caption import format_caption
from mangapost.services.telegram_client import Notifier
from mangapost.storage.post_repo import PostRepository

logger = logging.getLogger(__name__)

# adminPass is checked by the auth step, a missing one is a 401
REQUIRED_FIELDS = ("name", "description", "tags", "coverUrl", "destUrl")


class PublishState(str, enum.Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    AUTHORIZED = "authorized"
    REJECTED = "rejected"
    SUBMITTING = "submitting"
    SAVED = "saved"
    NOTIFYING = "notifying"
    DONE = "done"
    FAILED = "failed"


TRANSITIONS = {
    PublishState.IDLE: {PublishState.AUTHENTICATING},
    PublishState.AUTHENTICATING: {PublishState.AUTHORIZED, PublishState.REJECTED},
    PublishState.AUTHORIZED: {PublishState.SUBMITTING},
    PublishState.SUBMITTING: {PublishState.SAVED, PublishState.FAILED},
    PublishState.SAVED: {PublishState.NOTIFYING},
    PublishState.NOTIFYING: {PublishState.DONE, PublishState.FAILED},
}

TERMINAL = {PublishState.DONE, PublishState.REJECTED, PublishState.FAILED}


@dataclass
class PublishRun:
    """One pass through the publish state machine."""

    state: PublishState = PublishState.IDLE
    history: List[PublishState] = field(default_factory=lambda: [PublishState.IDLE])
    post: Optional[Post] = None
    link: str = ""
    error: Optional[PublishError] = None

    def advance(self, new: PublishState) -> None:
        if new not in TRANSITIONS.get(self.state, set()):
            raise RuntimeError(f"Illegal publish transition {self.state.value} -> {new.value}")
        self.state = new
        self.history.append(new)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL


def _text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("on", "true", "1", "yes")
    return False


def draft_from_payload(payload: Dict[str, Any]) -> PostDraft:
    """Validate a ``/admin/save`` body and build the draft; the secret is not checked here."""
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")

    missing = [k for k in REQUIRED_FIELDS if payload.get(k) in (None, "", [])]
    if missing:
        raise ValidationError(f"Please complete all required fields: {', '.join(missing)}.")

    raw_tags = payload.get("tags")
    if not isinstance(raw_tags, (str, list)):
        raise ValidationError("Tags must be a list or a comma-separated string.")

    draft = PostDraft(
        title=_text(payload, "name"),
        description=_text(payload, "description"),
        tags=parse_tags(raw_tags),
        cover_image=_text(payload, "coverUrl"),
        dest_url=_text(payload, "destUrl"),
        is_adult=_flag(payload.get("isAdult", False)),
    )
    if not (draft.title and draft.description and draft.cover_image and draft.dest_url):
        raise ValidationError("Please complete all required fields.")
    if not draft.dest_url.startswith(("http://", "https://", "tg://")):
        raise ValidationError("Destination link must be an http(s) URL.")
    if not draft.cover_image.startswith(("http://", "https://", "data:")):
        raise ValidationError("Cover image must be a URL or an uploaded image.")
    return draft


class Publisher:
    def __init__(self, *, account: AdminAccount, repo: PostRepository, notifier: Notifier):
        self._account = account
        self._repo = repo
        self._notifier = notifier

    async def publish(self, payload: Dict[str, Any]) -> PublishRun:
        """Authenticate, validate, save, then notify.

        Raises the error that ended the run; a post saved before a failed
        notification is kept with ``notified=False``.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object.")

        run = PublishRun()
        run.advance(PublishState.AUTHENTICATING)
        if not await self._account.verify(payload.get("adminPass")):
            run.advance(PublishState.REJECTED)
            run.error = AuthError("Unauthorized")
            logger.warning("Publish rejected: admin secret mismatch")
            raise run.error
        run.advance(PublishState.AUTHORIZED)

        # nothing is stored for an invalid body; the admin resubmits from here
        draft = draft_from_payload(payload)

        run.advance(PublishState.SUBMITTING)
        try:
            run.post = await self._repo.save(draft)
        except PersistenceError as exc:
            self._fail(run, exc)
            raise
        run.advance(PublishState.SAVED)
        logger.info("Saved post %s: %s", run.post.id, run.post.title)

        await self._notify(run)
        return run

    async def resend(self, post_id: int) -> PublishRun:
        """Send a saved post whose notification failed."""
        post = await self._repo.get(post_id)
        if post is None:
            raise ValidationError(f"Post {post_id} not found.")
        if post.notified:
            raise ValidationError("Post already published.")

        # the caller already holds an admin session
        run = PublishRun(state=PublishState.SAVED, history=[PublishState.SAVED], post=post)
        await self._notify(run)
        return run

    async def _notify(self, run: PublishRun) -> None:
        post = run.post
        run.advance(PublishState.NOTIFYING)
        caption = format_caption(post.title, post.description, post.tags, post.is_adult)
        try:
            run.link = await self._notifier.publish(post, caption)
        except NotificationError as exc:
            self._fail(run, exc)
            raise

        try:
            run.post = await self._repo.mark_notified(post.id)
        except PersistenceError as exc:
            # already in the channel; only the status flag is stale
            logger.error("Post %s sent but could not be marked notified: %s", post.id, exc)
        run.advance(PublishState.DONE)
        logger.info("Published post %s", post.id)

    def _fail(self, run: PublishRun, exc: PublishError) -> None:
        run.error = exc
        run.advance(PublishState.FAILED)
        logger.error("Publish failed in %s: %s", run.history[-2].value, exc)
