from __future__ import annotations

import unittest

from e6dl.blacklist_schema import BlacklistLine, BlacklistTree, Token
from e6dl.lexer import lex_blacklist
from e6dl.matcher import is_blacklisted, line_fires, token_hits
from e6dl.post import Post


def _post(
    post_id: int = 1,
    rating: str = "s",
    uploader_id: int = 10,
    tags: tuple[str, ...] = (),
    score: int = 0,
) -> Post:
    return Post(
        id=post_id,
        uploader_id=uploader_id,
        rating=rating,  # type: ignore[arg-type]
        tags=frozenset(tags),
        file_url=f"https://static.example/{post_id}.png",
        score=score,
    )


def _line(source: str) -> BlacklistLine:
    tree = lex_blacklist(source)
    assert len(tree.lines) == 1
    return tree.lines[0]


class TestTokenHits(unittest.TestCase):
    def test_plain(self) -> None:
        self.assertTrue(token_hits(Token.plain("gore"), _post(tags=("gore",))))
        self.assertFalse(token_hits(Token.plain("gore"), _post(tags=("Gore",))))

    def test_rating(self) -> None:
        self.assertTrue(token_hits(Token.for_rating("e"), _post(rating="e")))
        self.assertFalse(token_hits(Token.for_rating("e"), _post(rating="q")))
        for rating in ("s", "q", "e"):
            self.assertFalse(token_hits(Token.for_rating("banana"), _post(rating=rating)))

    def test_id_and_user_are_distinct(self) -> None:
        post = _post(post_id=42, uploader_id=7)
        self.assertTrue(token_hits(Token.for_id(42), post))
        self.assertFalse(token_hits(Token.for_id(7), post))
        self.assertTrue(token_hits(Token.for_user("x").with_user_id(7), post))
        self.assertFalse(token_hits(Token.for_user("x").with_user_id(42), post))

    def test_unresolved_user_never_hits(self) -> None:
        self.assertFalse(token_hits(Token.for_user("7"), _post(uploader_id=7)))

    def test_score_comparators(self) -> None:
        post = _post(score=10)
        self.assertTrue(token_hits(Token.for_score("<", 11), post))
        self.assertFalse(token_hits(Token.for_score("<", 10), post))
        self.assertTrue(token_hits(Token.for_score("<=", 10), post))
        self.assertTrue(token_hits(Token.for_score(">=", 10), post))
        self.assertFalse(token_hits(Token.for_score(">", 10), post))
        self.assertTrue(token_hits(Token.for_score("=", 10), post))


class TestLineFires(unittest.TestCase):
    def test_negation_duality(self) -> None:
        line = _line("a -b")
        for has_a in (False, True):
            for has_b in (False, True):
                tags = tuple(t for t, on in (("a", has_a), ("b", has_b)) if on)
                expected = has_a and not has_b
                self.assertEqual(line_fires(line, _post(tags=tags)), expected, tags)

    def test_conjunction_requires_every_positive(self) -> None:
        line = _line("gore young")
        self.assertFalse(line_fires(line, _post(tags=("gore",))))
        self.assertTrue(line_fires(line, _post(tags=("gore", "young", "art"))))

    def test_negative_only_line_fires_when_any_negative_misses(self) -> None:
        line = _line("-c -d")
        self.assertTrue(line_fires(line, _post(tags=())))
        self.assertTrue(line_fires(line, _post(tags=("c",))))
        self.assertFalse(line_fires(line, _post(tags=("c", "d"))))

    def test_unknown_rating_poisons_line(self) -> None:
        line = _line("gore rating:banana")
        for rating in ("s", "q", "e"):
            self.assertFalse(line_fires(line, _post(rating=rating, tags=("gore",))))

    def test_duplicate_tokens_count_once(self) -> None:
        self.assertTrue(line_fires(_line("gore gore"), _post(tags=("gore",))))
        self.assertFalse(line_fires(_line("-x -x"), _post(tags=("x",))))

    def test_empty_line_never_fires(self) -> None:
        self.assertFalse(line_fires(BlacklistLine([]), _post()))

    def test_negated_score_is_ignored(self) -> None:
        self.assertFalse(line_fires(_line("-score:<5"), _post(score=0)))
        self.assertTrue(line_fires(_line("gore -score:<5"), _post(tags=("gore",), score=0)))

    def test_any_line_fires_tree(self) -> None:
        tree = lex_blacklist("gore\nrating:e")
        self.assertTrue(is_blacklisted(tree, _post(rating="e")))
        self.assertTrue(is_blacklisted(tree, _post(tags=("gore",))))
        self.assertFalse(is_blacklisted(tree, _post(tags=("clean",))))
        self.assertFalse(is_blacklisted(BlacklistTree(), _post()))


if __name__ == "__main__":
    unittest.main()
