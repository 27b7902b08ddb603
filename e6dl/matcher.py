from __future__ import annotations

import operator
from typing import Callable

from .blacklist_schema import BlacklistLine, BlacklistTree, Rating, Token, TokenKind
from .post import Post

_SCORE_OPS: dict[str, Callable[[int, int], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
}


def token_hits(token: Token, post: Post) -> bool:
    """Whether a single token matches the post, ignoring negation."""
    kind = token.kind

    if kind is TokenKind.PLAIN:
        return token.payload in post.tags

    if kind is TokenKind.RATING:
        if token.rating is None or token.rating is Rating.UNKNOWN:
            return False
        return post.rating == token.rating.value

    if kind is TokenKind.ID:
        return token.value is not None and post.id == token.value

    if kind is TokenKind.USER:
        if not token.resolved or token.value is None:
            return False
        return post.uploader_id == token.value

    if kind is TokenKind.SCORE:
        compare = _SCORE_OPS.get(token.comparator or "")
        if compare is None or token.value is None:
            return False
        return compare(post.score, token.value)

    return False


def line_fires(line: BlacklistLine, post: Post) -> bool:
    """
    A line fires when every positive token hits and the negative tokens
    do not all hit.

    Duplicate tokens count once. Negated score terms are ignored, and a
    line with no countable terms never fires.
    """
    positive: set[Token] = set()
    negative: set[Token] = set()
    for token in line.tokens:
        if not token.negated:
            positive.add(token)
        elif token.kind is not TokenKind.SCORE:
            negative.add(token)

    if not positive and not negative:
        return False

    for token in positive:
        if not token_hits(token, post):
            return False

    if not negative:
        return True

    return not all(token_hits(token, post) for token in negative)


def is_blacklisted(tree: BlacklistTree, post: Post) -> bool:
    return any(line_fires(line, post) for line in tree.lines)
