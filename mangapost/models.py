from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_tags(raw: Union[str, List[Any], None]) -> List[str]:
    """Split a comma-separated string (or clean a list) into trimmed, non-empty tags."""
    if raw is None:
        return []
    items = raw.split(",") if isinstance(raw, str) else raw
    tags: List[str] = []
    for item in items:
        tag = str(item).strip()
        if tag:
            tags.append(tag)
    return tags


@dataclass
class PostDraft:
    title: str
    description: str
    tags: List[str]
    cover_image: str
    dest_url: str
    is_adult: bool = False


@dataclass
class Post:
    id: int
    title: str
    description: str
    tags: List[str]
    cover_image: str
    dest_url: str
    is_adult: bool
    created_at: str
    notified: bool = False

    @classmethod
    def from_draft(cls, draft: PostDraft, *, post_id: int, created_at: Optional[str] = None) -> "Post":
        return cls(
            id=post_id,
            title=draft.title,
            description=draft.description,
            tags=list(draft.tags),
            cover_image=draft.cover_image,
            dest_url=draft.dest_url,
            is_adult=draft.is_adult,
            created_at=created_at or now_iso(),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Post":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            description=data["description"],
            tags=parse_tags(data.get("tags")),
            cover_image=data["cover_image"],
            dest_url=data["dest_url"],
            is_adult=bool(data.get("is_adult", False)),
            created_at=data.get("created_at") or now_iso(),
            notified=bool(data.get("notified", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_listing(self) -> Dict[str, Any]:
        payload = self.to_dict()
        payload["adult_marker"] = "🔒" if self.is_adult else ""
        return payload
