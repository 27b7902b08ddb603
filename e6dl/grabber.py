from __future__ import annotations

from typing import Any, Protocol

from .blacklist import Blacklist
from .collection import (
    CATEGORY_GENERAL,
    CATEGORY_POOLS,
    CATEGORY_ROOT,
    CATEGORY_SETS,
    SINGLE_POSTS_NAME,
    GrabbedPost,
    NamingConvention,
    PostCollection,
    grabbed_from_pool,
    grabbed_from_post,
    grabbed_from_posts,
    order_pool_posts,
)
from .config_schema import DownloadConfig
from .errors import ApiError
from .invalid import is_invalid_post
from .normalize import post_from_api_item
from .post import Post
from .run_log import RunLogger
from .search import PostSource, SearchResult, collect_posts


class CollectionSource(PostSource, Protocol):
    def fetch_post(self, post_id: int) -> dict[str, Any]: ...

    def fetch_pool(self, pool_id: int) -> dict[str, Any]: ...

    def fetch_set(self, set_id: int) -> dict[str, Any]: ...


def _entry_name(entry: dict[str, Any], fallback: str) -> str:
    name = entry.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return fallback


def _entry_post_ids(entry: dict[str, Any]) -> list[int]:
    raw = entry.get("post_ids")
    if not isinstance(raw, list):
        return []
    return [i for i in raw if isinstance(i, int) and not isinstance(i, bool)]


class Grabber:
    """
    Turns download declarations into PostCollections.

    Artist, pool, set and favorites searches page until the board runs out
    of posts; general tag searches stop after `max_pages`. Every search
    result goes through the blacklist and the invalid-post rules before it
    is kept. The first collection always holds single posts.
    """

    def __init__(
        self,
        client: CollectionSource,
        *,
        blacklist: Blacklist | None = None,
        safe_mode: bool = False,
        naming: NamingConvention = "md5",
        max_pages: int = 5,
        posts_per_page: int = 320,
        logger: RunLogger | None = None,
    ) -> None:
        self._client = client
        self._blacklist = blacklist
        self._safe_mode = safe_mode
        self._naming = naming
        self._max_pages = max_pages
        self._posts_per_page = posts_per_page
        self._logger = logger

        self._single = PostCollection(SINGLE_POSTS_NAME, CATEGORY_ROOT)
        self._collections: list[PostCollection] = [self._single]
        self.blacklisted = 0
        self.invalid = 0

    @property
    def collections(self) -> list[PostCollection]:
        return list(self._collections)

    def _search(self, tags: str, *, exhaustive: bool) -> list[Post]:
        result: SearchResult = collect_posts(
            self._client,
            tags,
            blacklist=self._blacklist,
            max_pages=0 if exhaustive else self._max_pages,
            posts_per_page=self._posts_per_page,
            logger=self._logger,
        )
        self.blacklisted += result.blacklisted
        self.invalid += result.invalid
        return result.posts

    def _add(self, collection: PostCollection) -> PostCollection:
        self._collections.append(collection)
        if self._logger is not None:
            self._logger.info(
                "collection_grabbed",
                collection=collection.label,
                posts=len(collection),
                total_bytes=collection.total_bytes,
            )
        return collection

    def grab_general(self, tags: str) -> PostCollection:
        posts = self._search(tags, exhaustive=False)
        return self._add(PostCollection(tags, CATEGORY_GENERAL, grabbed_from_posts(posts, self._naming)))

    def grab_artist(self, artist: str) -> PostCollection:
        posts = self._search(artist, exhaustive=True)
        return self._add(PostCollection(artist, CATEGORY_GENERAL, grabbed_from_posts(posts, self._naming)))

    def grab_favorites(self, username: str) -> PostCollection:
        tags = f"fav:{username}"
        posts = self._search(tags, exhaustive=True)
        return self._add(PostCollection(tags, CATEGORY_ROOT, grabbed_from_posts(posts, self._naming)))

    def grab_pool(self, pool_id: int) -> PostCollection:
        entry = self._client.fetch_pool(pool_id)
        name = _entry_name(entry, f"pool_{pool_id}")
        posts = order_pool_posts(
            _entry_post_ids(entry),
            self._search(f"pool:{pool_id}", exhaustive=True),
        )
        return self._add(PostCollection(name, CATEGORY_POOLS, grabbed_from_pool(posts, name)))

    def grab_set(self, set_id: int) -> PostCollection:
        entry = self._client.fetch_set(set_id)
        name = _entry_name(entry, f"set_{set_id}")
        shortname = entry.get("shortname")
        query = f"set:{shortname}" if isinstance(shortname, str) and shortname.strip() else f"set:{set_id}"
        posts = self._search(query, exhaustive=True)
        return self._add(PostCollection(name, CATEGORY_SETS, grabbed_from_posts(posts, self._naming)))

    def grab_post(self, post_id: int) -> GrabbedPost | None:
        """
        Add one post to the single-post collection.

        Returns None when the post is skipped: not safe in safe mode,
        blacklisted, deleted, or without a file URL.
        """
        post = post_from_api_item(self._client.fetch_post(post_id))
        if post is None:
            raise ApiError(f"Post {post_id} response could not be normalized")

        reason = None
        if self._safe_mode and post.rating != "s":
            reason = "not_safe"
        elif self._blacklist is not None and self._blacklist.filter_posts([post]):
            self.blacklisted += 1
            reason = "blacklisted"
        elif is_invalid_post(post):
            self.invalid += 1
            reason = "invalid"

        if reason is not None:
            if self._logger is not None:
                self._logger.info("post_skipped", post_id=post_id, reason=reason)
            return None

        grabbed = grabbed_from_post(post, self._naming)
        self._single.posts.append(grabbed)
        if self._logger is not None:
            self._logger.info("post_grabbed", collection=self._single.label, post_id=post_id)
        return grabbed

    def grab_all(self, download: DownloadConfig, *, username: str = "") -> list[PostCollection]:
        """Grab favorites (when enabled and logged in) and every declared item."""
        if download.favorites and username:
            self.grab_favorites(username)
        for artist in download.artists:
            self.grab_artist(artist)
        for tags in download.general:
            self.grab_general(tags)
        for pool_id in download.pools:
            self.grab_pool(pool_id)
        for set_id in download.sets:
            self.grab_set(set_id)
        for post_id in download.posts:
            self.grab_post(post_id)
        return self.collections
