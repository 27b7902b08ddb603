from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Literal, Sequence

from .post import Post

NamingConvention = Literal["md5", "id"]

CATEGORY_GENERAL = "General Searches"
CATEGORY_POOLS = "Pools"
CATEGORY_SETS = "Sets"
# Single posts and favorites sit directly under the download directory.
CATEGORY_ROOT = ""

SINGLE_POSTS_NAME = "Single Posts"

_INVALID_PATH_CHARS = frozenset('?:*<>"|/\\')


def clean_path_component(name: str) -> str:
    """Replace characters that are not allowed in file or directory names with `_`."""
    cleaned = "".join("_" if c in _INVALID_PATH_CHARS or ord(c) < 32 else c for c in name)
    cleaned = cleaned.strip().rstrip(".")
    if cleaned in ("", "."):
        return "_"
    return cleaned


@dataclass(frozen=True)
class GrabbedPost:
    """A post that passed filtering, reduced to what the downloader needs."""

    post_id: int
    url: str
    name: str
    file_size: int = 0


def _extension(post: Post) -> str:
    if post.file_ext:
        return post.file_ext
    tail = (post.file_url or "").rsplit("/", 1)[-1]
    _, dot, ext = tail.rpartition(".")
    return ext if dot and ext else "bin"


def grabbed_from_post(post: Post, naming: NamingConvention = "md5") -> GrabbedPost:
    """
    File name is `<md5>.<ext>` or `<id>.<ext>`. Posts without an md5 fall
    back to the id. Raises ValueError for a post without a file URL.
    """
    if not post.file_url:
        raise ValueError(f"post {post.id} has no file URL")

    stem = post.md5 if naming == "md5" and post.md5 else str(post.id)
    return GrabbedPost(
        post_id=post.id,
        url=post.file_url,
        name=f"{stem}.{_extension(post)}",
        file_size=post.file_size,
    )


def grabbed_from_posts(posts: Iterable[Post], naming: NamingConvention = "md5") -> list[GrabbedPost]:
    return [grabbed_from_post(p, naming) for p in posts]


def grabbed_from_pool(posts: Sequence[Post], pool_name: str) -> list[GrabbedPost]:
    """Pool pages are named `<pool> Page_00001.<ext>`, numbered from 1 in the given order."""
    out: list[GrabbedPost] = []
    for page, post in enumerate(posts, start=1):
        if not post.file_url:
            raise ValueError(f"post {post.id} has no file URL")
        out.append(
            GrabbedPost(
                post_id=post.id,
                url=post.file_url,
                name=f"{pool_name} Page_{page:05d}.{_extension(post)}",
                file_size=post.file_size,
            )
        )
    return out


def order_pool_posts(post_ids: Sequence[int], posts: Iterable[Post]) -> list[Post]:
    """
    Arrange searched pool posts in the pool's own order.

    Ids the search did not return (blacklisted, invalid, or hidden) are
    skipped, so numbering stays contiguous. Posts missing from `post_ids`
    are appended in search order.
    """
    by_id = {p.id: p for p in posts}
    ordered: list[Post] = []
    for post_id in post_ids:
        post = by_id.pop(post_id, None)
        if post is not None:
            ordered.append(post)
    ordered.extend(by_id.values())
    return ordered


@dataclass
class PostCollection:
    """A named group of posts that is downloaded into one directory."""

    name: str
    category: str
    posts: list[GrabbedPost] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.posts)

    @property
    def total_bytes(self) -> int:
        return sum(p.file_size for p in self.posts)

    @property
    def label(self) -> str:
        return f"{self.category}/{self.name}" if self.category else self.name

    def directory(self, root: str | Path) -> Path:
        base = Path(root)
        if self.category:
            base = base / clean_path_component(self.category)
        return base / clean_path_component(self.name)
