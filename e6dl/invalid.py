from __future__ import annotations

from .post import Post


def is_invalid_post(post: Post) -> bool:
    """Deleted posts and posts without a file URL cannot be downloaded."""
    return bool(post.deleted) or not (post.file_url or "").strip()


def remove_invalid_posts(posts: list[Post]) -> int:
    kept = [p for p in posts if not is_invalid_post(p)]
    removed = len(posts) - len(kept)
    posts[:] = kept
    return removed
