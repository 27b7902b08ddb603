from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping
from urllib.parse import quote

import requests

from .api_retry import OnRetryFn, RetryPolicy, SleepFn, send_with_retries
from .config import Credentials
from .config_schema import SiteConfig
from .errors import ApiError, TransportError, UnauthorizedError, UserNotFoundError

DOWNLOAD_CHUNK_BYTES = 64 * 1024


class E621Client:
    """
    Thin wrapper around the board's JSON API.

    Covers what the blacklist pipeline and the downloader need: user lookup,
    the authenticated user's blacklist, paged post search, single post, pool
    and set entries, and streaming file downloads.
    """

    def __init__(
        self,
        site: SiteConfig,
        credentials: Credentials | None = None,
        *,
        session: requests.Session | None = None,
        retry: RetryPolicy | None = None,
        on_retry: OnRetryFn | None = None,
        sleep_fn: SleepFn | None = None,
    ) -> None:
        self._site = site
        self._base_url = site.active_base_url
        self._credentials = credentials or Credentials()
        self._session = session or requests.Session()
        self._retry = retry or RetryPolicy(max_attempts=site.max_attempts)
        self._on_retry = on_retry
        self._sleep_fn = sleep_fn

        self._headers = {"User-Agent": site.user_agent, "Accept": "application/json"}
        self._auth: tuple[str, str] | None = None
        if not self._credentials.is_anonymous:
            self._auth = (self._credentials.username, self._credentials.api_key)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def is_authenticated(self) -> bool:
        return self._auth is not None

    @property
    def username(self) -> str:
        return self._credentials.username

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "E621Client":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def _send(
        self,
        url: str,
        *,
        operation: str,
        params: Mapping[str, Any] | None = None,
        auth: bool = True,
        stream: bool = False,
    ) -> requests.Response:
        def _get() -> requests.Response:
            return self._session.get(
                url,
                params=dict(params) if params else None,
                headers=self._headers,
                auth=self._auth if auth else None,
                timeout=self._site.timeout_seconds,
                stream=stream,
            )

        return send_with_retries(
            _get,
            policy=self._retry,
            operation=operation,
            url=url,
            on_retry=self._on_retry,
            sleep_fn=self._sleep_fn,
        )

    def _get_json(
        self,
        path: str,
        *,
        operation: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        return self._send(f"{self._base_url}{path}", operation=operation, params=params).json()

    def _get_entry(self, path: str, *, operation: str, what: str) -> dict[str, Any]:
        try:
            data = self._get_json(path, operation=operation)
        except requests.HTTPError as e:
            raise ApiError(f"{what} request failed: {e}") from e
        except (requests.RequestException, ValueError) as e:
            raise ApiError(f"Unexpected error while fetching {what}: {e}") from e

        if not isinstance(data, dict):
            raise ApiError(f"{what} response is not an object")
        return data

    def fetch_user(self, name: str) -> dict[str, Any]:
        """GET /users/{name}.json. Raises ApiError on any failure."""
        user = (name or "").strip()
        if not user:
            raise ApiError("username must be a non-empty string")
        return self._get_entry(
            f"/users/{quote(user, safe='')}.json", operation="users.show", what=f"User {user}"
        )

    def lookup_user(self, name: str) -> int:
        """
        Resolve a username to its numeric id.

        Raises UserNotFoundError (404), UnauthorizedError (401/403) or
        TransportError for every other failure.
        """
        user = (name or "").strip()
        if not user:
            raise UserNotFoundError("username must be a non-empty string")

        try:
            data = self._get_json(f"/users/{quote(user, safe='')}.json", operation="users.lookup")
        except requests.HTTPError as e:
            code = e.response.status_code if e.response is not None else None
            if code == 404:
                raise UserNotFoundError(f"No user named {user!r}") from e
            if code in (401, 403):
                raise UnauthorizedError(f"Not authorized to look up user {user!r}") from e
            raise TransportError(f"User lookup failed ({user}): {e}") from e
        except (requests.RequestException, ValueError) as e:
            raise TransportError(f"User lookup failed ({user}): {e}") from e

        user_id = data.get("id") if isinstance(data, dict) else None
        if isinstance(user_id, bool) or not isinstance(user_id, int):
            raise TransportError(f"User lookup response for {user!r} has no integer id")
        return user_id

    def fetch_blacklist(self, username: str | None = None) -> str:
        """
        Return the `blacklisted_tags` text of a user's profile.

        The field is only visible to the user themself, so this is normally
        called for the authenticated user. Missing or null means no blacklist.
        """
        name = (username or self._credentials.username or "").strip()
        if not name:
            raise ApiError("A username is required to fetch a blacklist")

        data = self.fetch_user(name)
        tags = data.get("blacklisted_tags")
        return tags if isinstance(tags, str) else ""

    def fetch_post(self, post_id: int) -> dict[str, Any]:
        """GET /posts/{id}.json, unwrapped from its "post" envelope."""
        data = self._get_entry(f"/posts/{int(post_id)}.json", operation="posts.show", what=f"Post {post_id}")
        post = data.get("post")
        if not isinstance(post, dict):
            raise ApiError(f"Post {post_id} response has no post object")
        return post

    def fetch_pool(self, pool_id: int) -> dict[str, Any]:
        """GET /pools/{id}.json: name plus the ordered `post_ids`."""
        return self._get_entry(f"/pools/{int(pool_id)}.json", operation="pools.show", what=f"Pool {pool_id}")

    def fetch_set(self, set_id: int) -> dict[str, Any]:
        """GET /post_sets/{id}.json: name, shortname and `post_ids`."""
        return self._get_entry(
            f"/post_sets/{int(set_id)}.json", operation="post_sets.show", what=f"Set {set_id}"
        )

    def search_posts(self, tags: str, *, page: int = 1, limit: int | None = None) -> list[dict[str, Any]]:
        """GET /posts.json for one page of a tag search."""
        per_page = int(limit if limit is not None else self._site.posts_per_page)
        if page < 1:
            raise ApiError("page must be >= 1")
        if not (1 <= per_page <= 320):
            raise ApiError("limit must be between 1 and 320")

        params = {"tags": (tags or "").strip(), "page": str(page), "limit": str(per_page)}
        try:
            data = self._get_json("/posts.json", operation="posts.index", params=params)
        except requests.HTTPError as e:
            raise ApiError(f"Post search failed ({tags!r}, page {page}): {e}") from e
        except (requests.RequestException, ValueError) as e:
            raise ApiError(
                f"Unexpected error while searching posts ({tags!r}, page {page}): {e}"
            ) from e

        posts = data.get("posts") if isinstance(data, dict) else None
        if not isinstance(posts, list):
            raise ApiError(f"Post search response for {tags!r} has no posts list")
        return [p for p in posts if isinstance(p, dict)]

    def download_file(self, url: str, dest: str | Path) -> int:
        """
        Stream a post file to `dest` and return the number of bytes written.

        Bytes go to a `.part` file next to `dest` that is renamed on success
        and removed on failure. The file host gets no credentials.
        """
        target = Path(dest)
        partial = target.with_name(target.name + ".part")
        target.parent.mkdir(parents=True, exist_ok=True)

        written = 0
        try:
            response = self._send(url, operation="file.download", auth=False, stream=True)
            try:
                with partial.open("wb") as fp:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_BYTES):
                        if chunk:
                            fp.write(chunk)
                            written += len(chunk)
            finally:
                response.close()
        except (requests.RequestException, OSError) as e:
            partial.unlink(missing_ok=True)
            raise ApiError(f"Download failed ({url}): {e}") from e

        partial.replace(target)
        return written
