from __future__ import annotations
import re
from html import escape
from typing import Iterable, List

# Telegram limit for photo captions
MAX_CAPTION = 1024

_WS = re.compile(r"\s+")


def hashtags(tags: Iterable[str]) -> List[str]:
    out: List[str] = []
    for tag in tags:
        token = _WS.sub("", str(tag))
        if token:
            out.append(f"#{token}")
    return out


def _clip(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    if limit <= 0:
        return ""
    return text[: limit - 1].rstrip() + "…"


def _render(title: str, description: str, tags: List[str], is_adult: bool) -> str:
    parts = [
        f"<b>🔥 NEW UPLOAD: {escape(title, quote=False)}</b>",
        f"📝 <b>Summary:</b>\n<i>{escape(description, quote=False)}</i>",
    ]
    if tags:
        parts.append(f"🏷 <b>Tags:</b>\n{escape(' '.join(tags), quote=False)}")
    if is_adult:
        parts.append("🔒 <b>18+ ONLY</b>")
    parts.append("🚀 <i>Click below to read the full manga!</i>")
    return "\n\n".join(parts)


def format_caption(
    title: str,
    description: str,
    tags: Iterable[str],
    is_adult: bool = False,
    *,
    limit: int = MAX_CAPTION,
) -> str:
    """Build the HTML caption for a release post.

    Title and description are escaped for Telegram's HTML parse mode. When the
    result exceeds ``limit`` the description is shortened with a trailing
    ellipsis, then the title, then trailing hashtags are dropped.
    """
    title = title.strip()
    description = description.strip()
    tags_out = hashtags(tags)

    def overflow() -> int:
        return len(_render(title, description, tags_out, is_adult)) - limit

    while overflow() > 0 and description not in ("", "…"):
        description = _clip(description, max(len(description) - overflow(), 1))
    while overflow() > 0 and title not in ("", "…"):
        title = _clip(title, max(len(title) - overflow(), 1))
    while overflow() > 0 and tags_out:
        tags_out.pop()
    return _render(title, description, tags_out, is_adult)
