from __future__ import annotations

import unittest

from e6dl.blacklist_schema import TokenKind
from e6dl.errors import ResolverError, TransportError, UnauthorizedError, UserNotFoundError
from e6dl.lexer import lex_blacklist
from e6dl.resolver import StaticUserLookup, resolve_users


class _RecordingLookup:
    def __init__(self, users: dict[str, int], *, errors: dict[str, Exception] | None = None) -> None:
        self._users = users
        self._errors = errors or {}
        self.calls: list[str] = []

    def lookup_user(self, name: str) -> int:
        self.calls.append(name)
        if name in self._errors:
            raise self._errors[name]
        if name not in self._users:
            raise UserNotFoundError(name)
        return self._users[name]


class TestResolveUsers(unittest.TestCase):
    def test_rewrites_user_tokens_in_place(self) -> None:
        tree = lex_blacklist("user:alice gore\n-user:bob\nuser:Alice rating:e")
        lookup = _RecordingLookup({"alice": 99, "bob": 7})

        rewritten = resolve_users(tree, lookup)

        self.assertEqual(rewritten, 3)
        self.assertEqual(lookup.calls, ["alice", "bob"])

        users = [t for t in tree.iter_tokens() if t.kind is TokenKind.USER]
        self.assertEqual([t.payload for t in users], ["99", "7", "99"])
        self.assertEqual([t.value for t in users], [99, 7, 99])
        self.assertTrue(all(t.resolved for t in users))
        self.assertTrue(users[1].negated)
        self.assertFalse(tree.has_unresolved_users())

    def test_is_idempotent(self) -> None:
        tree = lex_blacklist("user:alice")
        lookup = _RecordingLookup({"alice": 1})
        resolve_users(tree, lookup)
        snapshot = [list(line.tokens) for line in tree.lines]

        self.assertEqual(resolve_users(tree, lookup), 0)
        self.assertEqual(lookup.calls, ["alice"])
        self.assertEqual([list(line.tokens) for line in tree.lines], snapshot)

    def test_failure_leaves_tree_untouched(self) -> None:
        tree = lex_blacklist("user:alice\nuser:ghost")
        lookup = _RecordingLookup({"alice": 1})

        with self.assertRaises(ResolverError) as ctx:
            resolve_users(tree, lookup)

        self.assertEqual(ctx.exception.name, "ghost")
        self.assertIsInstance(ctx.exception.cause, UserNotFoundError)
        self.assertTrue(all(not t.resolved for t in tree.iter_tokens()))

    def test_transport_and_auth_errors_are_wrapped(self) -> None:
        for exc in (TransportError("timeout"), UnauthorizedError("401"), OSError("boom")):
            tree = lex_blacklist("user:alice")
            lookup = _RecordingLookup({}, errors={"alice": exc})
            with self.assertRaises(ResolverError) as ctx:
                resolve_users(tree, lookup)
            self.assertIs(ctx.exception.cause, exc)
            self.assertIs(ctx.exception.__cause__, exc)

    def test_rejects_non_integer_ids(self) -> None:
        class _BadLookup:
            def lookup_user(self, name: str) -> int:
                return "12"  # type: ignore[return-value]

        with self.assertRaises(ResolverError):
            resolve_users(lex_blacklist("user:alice"), _BadLookup())

    def test_no_user_tokens_means_no_lookups(self) -> None:
        lookup = _RecordingLookup({})
        self.assertEqual(resolve_users(lex_blacklist("gore\nid:1"), lookup), 0)
        self.assertEqual(lookup.calls, [])


class TestStaticUserLookup(unittest.TestCase):
    def test_case_insensitive_names(self) -> None:
        lookup = StaticUserLookup({"Alice": 3})
        self.assertEqual(lookup.lookup_user("alice"), 3)
        with self.assertRaises(UserNotFoundError):
            lookup.lookup_user("bob")


if __name__ == "__main__":
    unittest.main()
