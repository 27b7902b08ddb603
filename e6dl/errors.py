from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ApiError(RuntimeError):
    """Raised when a request to the board's JSON API fails."""


class UserLookupError(RuntimeError):
    """Raised when a username cannot be turned into a numeric user id."""


class UserNotFoundError(UserLookupError):
    """The board has no user with the requested name."""


class UnauthorizedError(UserLookupError):
    """The board rejected the credentials used for the lookup."""


class TransportError(UserLookupError):
    """The lookup failed on the wire (connection, timeout, bad payload)."""


class LexError(RuntimeError):
    """
    Raised when blacklist text cannot be tokenized.

    `offset` is the 0-based character offset into the stripped input and
    `line` counts the newlines before it.
    """

    def __init__(self, kind: str, message: str, *, offset: int, line: int) -> None:
        super().__init__(f"{message} (line {line}, offset {offset})")
        self.kind = kind
        self.message = message
        self.offset = offset
        self.line = line


class ResolverError(RuntimeError):
    """Raised when a `user:` reference in the blacklist cannot be resolved."""

    def __init__(self, name: str, cause: BaseException | str) -> None:
        super().__init__(f"Failed to resolve blacklisted user {name!r}: {cause}")
        self.name = name
        self.cause = cause


class PreconditionError(RuntimeError):
    """Raised when the blacklist is used before its user references are resolved."""
