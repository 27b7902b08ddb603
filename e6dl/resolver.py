from __future__ import annotations

from typing import Protocol

from .blacklist_schema import BlacklistTree, fits_i64
from .errors import ResolverError, UserNotFoundError


class UserLookup(Protocol):
    def lookup_user(self, name: str) -> int:
        """Return the numeric id for `name` or raise a UserLookupError."""
        ...


class StaticUserLookup:
    """UserLookup backed by a fixed name -> id mapping (offline runs)."""

    def __init__(self, users: dict[str, int] | None = None) -> None:
        self._users = {k.lower(): int(v) for k, v in (users or {}).items()}

    def lookup_user(self, name: str) -> int:
        key = (name or "").lower()
        if key not in self._users:
            raise UserNotFoundError(f"No user named {name!r}")
        return self._users[key]


def _coerce_user_id(name: str, raw: object) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ResolverError(name, f"lookup returned a non-integer id: {raw!r}")
    if not fits_i64(raw):
        raise ResolverError(name, f"lookup returned an out-of-range id: {raw}")
    return raw


def resolve_users(tree: BlacklistTree, lookup: UserLookup) -> int:
    """
    Replace every unresolved `user:<name>` token with its numeric user id.

    All lookups happen before any token is rewritten, so a failure leaves
    the tree untouched. Already-resolved tokens are skipped. Returns the
    number of tokens rewritten.
    """
    ids: dict[str, int] = {}
    for token in tree.iter_tokens():
        if not token.is_unresolved_user or token.payload in ids:
            continue

        name = token.payload
        try:
            raw = lookup.lookup_user(name)
        except Exception as e:
            raise ResolverError(name, e) from e

        ids[name] = _coerce_user_id(name, raw)

    rewritten = 0
    for line in tree.lines:
        for i, token in enumerate(line.tokens):
            if token.is_unresolved_user:
                line.tokens[i] = token.with_user_id(ids[token.payload])
                rewritten += 1

    return rewritten
