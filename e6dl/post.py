from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PostRating = Literal["s", "q", "e"]

TAG_CATEGORIES: tuple[str, ...] = (
    "general",
    "species",
    "character",
    "copyright",
    "artist",
    "invalid",
    "lore",
    "meta",
)


@dataclass(frozen=True)
class Post:
    """A post as seen by the blacklist and invalid-post filters."""

    id: int
    uploader_id: int
    rating: PostRating
    tags: frozenset[str] = frozenset()
    deleted: bool = False
    file_url: str | None = None

    score: int = 0
    md5: str | None = None
    file_ext: str | None = None
    file_size: int = 0
