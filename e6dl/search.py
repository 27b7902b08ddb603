from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from .blacklist import Blacklist
from .config_schema import AppConfig
from .invalid import remove_invalid_posts
from .normalize import posts_from_api_payload
from .post import Post
from .run_log import RunLogger


class PostSource(Protocol):
    @property
    def is_authenticated(self) -> bool: ...

    def fetch_blacklist(self, username: str | None = None) -> str: ...

    def lookup_user(self, name: str) -> int: ...

    def search_posts(
        self, tags: str, *, page: int = 1, limit: int | None = None
    ) -> list[dict[str, Any]]: ...


@dataclass
class SearchResult:
    tags: str
    posts: list[Post] = field(default_factory=list)
    pages: int = 0
    blacklisted: int = 0
    invalid: int = 0
    skipped: int = 0


def load_session_blacklist(
    config: AppConfig,
    client: PostSource,
    *,
    logger: RunLogger | None = None,
) -> Blacklist | None:
    """
    Fetch, compile and resolve the blacklist for this session.

    Returns None when the blacklist is disabled, skipped for an anonymous
    client, or empty. LexError and ResolverError propagate to the caller.
    """
    cfg = config.blacklist
    if not cfg.enabled:
        if logger is not None:
            logger.info("blacklist_skipped", reason="disabled")
        return None

    if client.is_authenticated:
        source = client.fetch_blacklist()
    elif cfg.skip_when_unauthenticated:
        if logger is not None:
            logger.info("blacklist_skipped", reason="unauthenticated")
        return None
    else:
        source = ""

    text = "\n".join([source, *cfg.extra_lines])
    blacklist = Blacklist.parse(text)
    if blacklist.is_empty:
        if logger is not None:
            logger.info("blacklist_skipped", reason="empty")
        return None

    blacklist.resolve_users(client)

    if logger is not None:
        logger.info(
            "blacklist_loaded",
            lines=len(blacklist.lines),
            extra_lines=len(cfg.extra_lines),
        )
    return blacklist


def collect_posts(
    client: PostSource,
    tags: str,
    *,
    blacklist: Blacklist | None = None,
    max_pages: int = 5,
    posts_per_page: int = 320,
    logger: RunLogger | None = None,
) -> SearchResult:
    """
    Page through a tag search, dropping blacklisted and invalid posts.

    Pages are requested from 1 until an empty page or `max_pages`
    (0 means no page limit). Each page is appended oldest-first.
    """
    if max_pages < 0:
        raise ValueError("max_pages must be >= 0")

    result = SearchResult(tags=tags)
    page = 1

    while max_pages == 0 or page <= max_pages:
        items = client.search_posts(tags, page=page, limit=posts_per_page)
        if not items:
            break

        batch, skipped = posts_from_api_payload(items)
        blacklisted = blacklist.filter_posts(batch) if blacklist is not None else 0
        invalid = remove_invalid_posts(batch)

        batch.reverse()
        result.posts.extend(batch)
        result.pages += 1
        result.blacklisted += blacklisted
        result.invalid += invalid
        result.skipped += skipped

        if logger is not None:
            logger.debug(
                "search_page_processed",
                tags=tags,
                page=page,
                received=len(items),
                kept=len(batch),
                blacklisted=blacklisted,
                invalid=invalid,
                skipped=skipped,
            )

        page += 1

    if logger is not None:
        logger.info(
            "search_completed",
            tags=tags,
            pages=result.pages,
            kept=len(result.posts),
            blacklisted=result.blacklisted,
            invalid=result.invalid,
            skipped=result.skipped,
        )

    return result
