from __future__ import annotations

from typing import Any, Mapping

from .post import TAG_CATEGORIES, Post

_RATINGS = ("s", "q", "e")


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        v = value.strip()
        if v.lstrip("-").isdigit():
            return int(v)
    return None


def _coerce_str(value: Any) -> str | None:
    if isinstance(value, str):
        s = value.strip()
        return s if s else None
    return None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _collect_tags(value: Any) -> frozenset[str]:
    """
    Flatten the categorized tag object of a post.

    Accepts either the category mapping or a space separated tag string.
    """
    if isinstance(value, str):
        return frozenset(t for t in value.split() if t)

    tags = _mapping(value)
    out: set[str] = set()
    for category in TAG_CATEGORIES:
        items = tags.get(category)
        if not isinstance(items, list):
            continue
        for item in items:
            name = _coerce_str(item)
            if name:
                out.add(name)
    return frozenset(out)


def _score_total(value: Any) -> int:
    if isinstance(value, Mapping):
        total = _coerce_int(value.get("total"))
        if total is not None:
            return total
        up = _coerce_int(value.get("up")) or 0
        down = _coerce_int(value.get("down")) or 0
        return up + down
    return _coerce_int(value) or 0


def post_from_api_item(item: Mapping[str, Any]) -> Post | None:
    """
    Build a Post from one element of the `/posts.json` "posts" array.

    Returns None when the item has no usable id.
    """
    post_id = _coerce_int(item.get("id"))
    if post_id is None:
        return None

    uploader_id = _coerce_int(item.get("uploader_id"))
    rating = (_coerce_str(item.get("rating")) or "").lower()[:1]

    file_obj = _mapping(item.get("file"))
    flags = _mapping(item.get("flags"))

    deleted = flags.get("deleted")
    if not isinstance(deleted, bool):
        deleted = bool(item.get("is_deleted") is True)

    return Post(
        id=post_id,
        uploader_id=uploader_id if uploader_id is not None else 0,
        rating=rating if rating in _RATINGS else "e",
        tags=_collect_tags(item.get("tags")),
        deleted=deleted,
        file_url=_coerce_str(file_obj.get("url")),
        score=_score_total(item.get("score")),
        md5=_coerce_str(file_obj.get("md5")),
        file_ext=_coerce_str(file_obj.get("ext")),
        file_size=max(0, _coerce_int(file_obj.get("size")) or 0),
    )


def posts_from_api_payload(payload: Any) -> tuple[list[Post], int]:
    """
    Normalize a `/posts.json` response (or a bare list of post objects).

    Returns the posts and the number of items that could not be normalized.
    """
    if isinstance(payload, Mapping):
        if "posts" in payload:
            items = payload.get("posts")
        elif "post" in payload:
            items = [payload.get("post")]
        else:
            items = []
    else:
        items = payload

    if not isinstance(items, list):
        return [], 0

    posts: list[Post] = []
    skipped = 0
    for item in items:
        post = post_from_api_item(item) if isinstance(item, Mapping) else None
        if post is None:
            skipped += 1
            continue
        posts.append(post)
    return posts, skipped


def post_to_record(post: Post) -> dict[str, Any]:
    """JSON-friendly form of a Post (tags sorted for stable output)."""
    return {
        "id": post.id,
        "uploader_id": post.uploader_id,
        "rating": post.rating,
        "tags": sorted(post.tags),
        "deleted": post.deleted,
        "file_url": post.file_url,
        "score": post.score,
        "md5": post.md5,
        "file_ext": post.file_ext,
        "file_size": post.file_size,
    }
