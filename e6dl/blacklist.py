from __future__ import annotations

from .blacklist_schema import BlacklistLine, BlacklistTree, render_tree
from .errors import PreconditionError
from .lexer import lex_blacklist
from .matcher import is_blacklisted
from .post import Post
from .resolver import UserLookup, resolve_users


def filter_posts(posts: list[Post], tree: BlacklistTree) -> int:
    """
    Remove every blacklisted post from `posts` in place.

    Survivors keep their relative order. Returns the number of posts removed.
    Raises PreconditionError if the tree still has unresolved `user:` terms.
    """
    if tree.has_unresolved_users():
        raise PreconditionError(
            "Blacklist has unresolved user references; resolve users before filtering"
        )

    kept = [post for post in posts if not is_blacklisted(tree, post)]
    removed = len(posts) - len(kept)
    posts[:] = kept
    return removed


class Blacklist:
    """
    A compiled user blacklist: parse once, resolve `user:` references once,
    then filter any number of post batches with it.
    """

    def __init__(self, tree: BlacklistTree | None = None) -> None:
        self._tree = tree if tree is not None else BlacklistTree()

    @classmethod
    def parse(cls, source: str) -> "Blacklist":
        return cls(lex_blacklist(source))

    @property
    def tree(self) -> BlacklistTree:
        return self._tree

    @property
    def lines(self) -> list[BlacklistLine]:
        return list(self._tree.lines)

    @property
    def is_empty(self) -> bool:
        return not self._tree.lines

    @property
    def is_resolved(self) -> bool:
        return not self._tree.has_unresolved_users()

    def resolve_users(self, lookup: UserLookup) -> "Blacklist":
        resolve_users(self._tree, lookup)
        return self

    def extend(self, other: "Blacklist") -> "Blacklist":
        return Blacklist(self._tree.concat(other.tree))

    def is_blacklisted(self, post: Post) -> bool:
        return is_blacklisted(self._tree, post)

    def filter_posts(self, posts: list[Post]) -> int:
        return filter_posts(posts, self._tree)

    def render(self) -> str:
        return render_tree(self._tree)
