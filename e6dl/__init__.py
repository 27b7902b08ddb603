from __future__ import annotations

from .blacklist import Blacklist, filter_posts
from .blacklist_schema import BlacklistLine, BlacklistTree, Rating, Token, TokenKind
from .errors import LexError, PreconditionError, ResolverError
from .lexer import lex_blacklist
from .matcher import is_blacklisted, line_fires
from .post import Post
from .resolver import UserLookup, resolve_users

__all__ = [
    "Blacklist",
    "BlacklistLine",
    "BlacklistTree",
    "LexError",
    "Post",
    "PreconditionError",
    "Rating",
    "ResolverError",
    "Token",
    "TokenKind",
    "UserLookup",
    "filter_posts",
    "is_blacklisted",
    "lex_blacklist",
    "line_fires",
    "resolve_users",
]
