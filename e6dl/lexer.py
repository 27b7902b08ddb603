from __future__ import annotations

from typing import Callable

from .blacklist_schema import (
    SCORE_COMPARATORS,
    BlacklistLine,
    BlacklistTree,
    Token,
    fits_i64,
)
from .errors import LexError


def is_tag_char(c: str) -> bool:
    """ASCII `!`..`~` except `:`, or any non-ASCII alphanumeric character."""
    if not c:
        return False
    if "!" <= c <= "~":
        return c != ":"
    return ord(c) > 127 and c.isalnum()


def fold_tag_name(name: str) -> str:
    """
    Lower-case a tag name one character at a time.

    A character whose lower-case form is not a single tag character (for
    example `İ`, which lowers to `i` plus a combining dot) is kept as is, so
    folded names always lex back to themselves.
    """
    out: list[str] = []
    for c in name:
        low = c.lower()
        out.append(low if len(low) == 1 and is_tag_char(low) else c)
    return "".join(out)


def _is_ascii_letter(c: str) -> bool:
    return c.isascii() and c.isalpha()


def _is_ascii_digit(c: str) -> bool:
    return "0" <= c <= "9" if c else False


def _is_comparator_char(c: str) -> bool:
    return c in ("<", ">", "=") if c else False


class _Cursor:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def eof(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        if self.eof():
            return ""
        return self.text[self.pos]

    def advance(self) -> str:
        ch = self.text[self.pos]
        self.pos += 1
        return ch

    def take_while(self, test: Callable[[str], bool]) -> str:
        start = self.pos
        while not self.eof() and test(self.text[self.pos]):
            self.pos += 1
        return self.text[start : self.pos]

    def error(self, kind: str, message: str, *, offset: int | None = None) -> LexError:
        at = self.pos if offset is None else offset
        return LexError(kind, message, offset=at, line=self.text.count("\n", 0, at))


def lex_blacklist(source: str) -> BlacklistTree:
    """
    Tokenize blacklist text into lines of tokens.

    The input is stripped first; `\\n` ends a line and every other whitespace
    character separates tokens. Blank lines produce nothing. Raises LexError
    on the first malformed token.
    """
    cur = _Cursor((source or "").strip())
    lines: list[BlacklistLine] = []
    tokens: list[Token] = []

    while not cur.eof():
        ch = cur.peek()
        if ch == "\n":
            cur.advance()
            if tokens:
                lines.append(BlacklistLine(tokens))
                tokens = []
            continue
        if ch.isspace():
            cur.advance()
            continue

        tokens.append(_lex_token(cur))

        nxt = cur.peek()
        if nxt and not nxt.isspace():
            raise cur.error("bad_token", f"Unexpected character {nxt!r} after token")

    if tokens:
        lines.append(BlacklistLine(tokens))

    return BlacklistTree(lines)


def _lex_token(cur: _Cursor) -> Token:
    start = cur.pos
    negated = False

    if cur.peek() == "-":
        cur.advance()
        negated = True
        if not is_tag_char(cur.peek()):
            raise cur.error("bad_token", "Negation marker without a tag", offset=start)

    name_start = cur.pos
    name = fold_tag_name(cur.take_while(is_tag_char))
    if not name:
        raise cur.error("bad_token", f"Unexpected character {cur.peek()!r}", offset=name_start)

    if cur.peek() != ":":
        return Token.plain(name, negated=negated)

    cur.advance()
    return _lex_special(cur, name, negated=negated, start=start)


def _lex_special(cur: _Cursor, name: str, *, negated: bool, start: int) -> Token:
    value_start = cur.pos

    if name == "rating":
        return Token.for_rating(cur.take_while(_is_ascii_letter), negated=negated)

    if name == "id":
        digits = cur.take_while(_is_ascii_digit)
        if not digits:
            raise cur.error("bad_id", "Expected digits after 'id:'", offset=value_start)
        post_id = int(digits)
        if not fits_i64(post_id):
            raise cur.error("bad_id", f"Post id out of range: {digits}", offset=value_start)
        return Token.for_id(post_id, negated=negated)

    if name == "user":
        username = fold_tag_name(cur.take_while(is_tag_char))
        if not username:
            raise cur.error("bad_token", "Expected a username after 'user:'", offset=value_start)
        return Token.for_user(username, negated=negated)

    if name == "score":
        return _lex_score(cur, negated=negated, value_start=value_start)

    raise cur.error("unknown_special", f"Unknown special tag identifier: {name}", offset=start)


def _lex_score(cur: _Cursor, *, negated: bool, value_start: int) -> Token:
    comparator = cur.take_while(_is_comparator_char) or "="
    if comparator not in SCORE_COMPARATORS:
        raise cur.error("bad_score", f"Unknown score comparator: {comparator}", offset=value_start)

    number_start = cur.pos
    sign = ""
    if cur.peek() == "-":
        cur.advance()
        sign = "-"

    digits = cur.take_while(_is_ascii_digit)
    if not digits:
        raise cur.error("bad_score", "Expected digits after 'score:'", offset=number_start)

    threshold = int(sign + digits)
    if not fits_i64(threshold):
        raise cur.error("bad_score", f"Score out of range: {sign}{digits}", offset=number_start)

    return Token.for_score(comparator, threshold, negated=negated)
