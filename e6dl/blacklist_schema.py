from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TokenKind(str, Enum):
    PLAIN = "plain"
    RATING = "rating"
    ID = "id"
    USER = "user"
    SCORE = "score"


class Rating(str, Enum):
    SAFE = "s"
    QUESTIONABLE = "q"
    EXPLICIT = "e"
    UNKNOWN = "unknown"


_RATING_ALIASES: dict[str, Rating] = {
    "safe": Rating.SAFE,
    "s": Rating.SAFE,
    "questionable": Rating.QUESTIONABLE,
    "q": Rating.QUESTIONABLE,
    "explicit": Rating.EXPLICIT,
    "e": Rating.EXPLICIT,
}

SCORE_COMPARATORS = ("<=", ">=", "<", ">", "=")

I64_MIN = -(2**63)
I64_MAX = 2**63 - 1


def classify_rating(value: str) -> Rating:
    return _RATING_ALIASES.get((value or "").lower(), Rating.UNKNOWN)


def fits_i64(value: int) -> bool:
    return I64_MIN <= value <= I64_MAX


@dataclass(frozen=True)
class Token:
    """
    A single blacklist term.

    `payload` holds the tag name for PLAIN, the (lower-cased) value for
    RATING, and the username or decimal user id for USER. `value` holds
    the post id for ID, the user id for a resolved USER and the threshold
    for SCORE.
    """

    kind: TokenKind
    payload: str = ""
    negated: bool = False
    rating: Rating | None = None
    value: int | None = None
    comparator: str | None = None
    resolved: bool = False

    @classmethod
    def plain(cls, name: str, *, negated: bool = False) -> "Token":
        return cls(kind=TokenKind.PLAIN, payload=name, negated=negated)

    @classmethod
    def for_rating(cls, raw: str, *, negated: bool = False) -> "Token":
        text = (raw or "").lower()
        return cls(
            kind=TokenKind.RATING,
            payload=text,
            negated=negated,
            rating=classify_rating(text),
        )

    @classmethod
    def for_id(cls, post_id: int, *, negated: bool = False) -> "Token":
        return cls(kind=TokenKind.ID, payload=str(post_id), negated=negated, value=post_id)

    @classmethod
    def for_user(cls, name: str, *, negated: bool = False) -> "Token":
        return cls(kind=TokenKind.USER, payload=name, negated=negated)

    @classmethod
    def for_score(cls, comparator: str, threshold: int, *, negated: bool = False) -> "Token":
        if comparator not in SCORE_COMPARATORS:
            raise ValueError(f"unsupported score comparator: {comparator!r}")
        return cls(
            kind=TokenKind.SCORE,
            payload=f"{comparator}{threshold}",
            negated=negated,
            value=threshold,
            comparator=comparator,
        )

    @property
    def is_unresolved_user(self) -> bool:
        return self.kind is TokenKind.USER and not self.resolved

    def with_user_id(self, user_id: int) -> "Token":
        if self.kind is not TokenKind.USER:
            raise ValueError("only user tokens can carry a user id")
        return Token(
            kind=TokenKind.USER,
            payload=str(user_id),
            negated=self.negated,
            value=user_id,
            resolved=True,
        )


@dataclass
class BlacklistLine:
    tokens: list[Token] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self):
        return iter(self.tokens)


@dataclass
class BlacklistTree:
    lines: list[BlacklistLine] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def iter_tokens(self):
        for line in self.lines:
            yield from line.tokens

    def has_unresolved_users(self) -> bool:
        return any(t.is_unresolved_user for t in self.iter_tokens())

    def concat(self, other: "BlacklistTree") -> "BlacklistTree":
        return BlacklistTree(
            lines=[BlacklistLine(list(line.tokens)) for line in (*self.lines, *other.lines)]
        )


def render_token(token: Token) -> str:
    sign = "-" if token.negated else ""
    if token.kind is TokenKind.PLAIN:
        body = token.payload
    elif token.kind is TokenKind.SCORE:
        body = f"score:{token.comparator}{token.value}"
    else:
        body = f"{token.kind.value}:{token.payload}"
    return sign + body


def render_line(line: BlacklistLine) -> str:
    return " ".join(render_token(t) for t in line.tokens)


def render_tree(tree: BlacklistTree) -> str:
    return "\n".join(render_line(line) for line in tree.lines)
