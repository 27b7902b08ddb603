from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _validate_env_var_name(value: str) -> str:
    name = (value or "").strip()
    if not _ENV_NAME_RE.fullmatch(name):
        raise ValueError("must be a valid environment variable name")
    return name


def _validate_base_url(value: str) -> str:
    url = (value or "").strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return url


PositiveInt = Annotated[int, Field(ge=1)]
NonNegativeInt = Annotated[int, Field(ge=0)]


class SiteConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str = "https://e621.net"
    safe_base_url: str = "https://e926.net"
    safe_mode: bool = False
    user_agent: str = "e6dl/0.1.0 (blacklist-aware downloader)"
    timeout_seconds: float = Field(60.0, gt=0)
    posts_per_page: int = Field(320, ge=1, le=320)
    max_pages: NonNegativeInt = 5  # 0 keeps going until an empty page
    max_attempts: PositiveInt = 4

    @field_validator("base_url", "safe_base_url")
    @classmethod
    def _urls_must_be_http(cls, v: str) -> str:
        return _validate_base_url(v)

    @field_validator("user_agent")
    @classmethod
    def _user_agent_must_be_set(cls, v: str) -> str:
        ua = (v or "").strip()
        if not ua:
            raise ValueError("must be a non-empty string")
        return ua

    @property
    def active_base_url(self) -> str:
        return self.safe_base_url if self.safe_mode else self.base_url


class LoginConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    username: str = ""
    api_key_env: str = "E621_API_KEY"

    @field_validator("username")
    @classmethod
    def _strip_username(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("api_key_env")
    @classmethod
    def _api_key_env_must_be_valid(cls, v: str) -> str:
        return _validate_env_var_name(v)


class BlacklistConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    skip_when_unauthenticated: bool = True
    extra_lines: list[str] = Field(default_factory=list)

    @field_validator("extra_lines")
    @classmethod
    def _drop_blank_lines(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for item in v:
            line = (item or "").strip()
            if not line:
                continue
            if "\n" in line:
                raise ValueError("each entry must be a single blacklist line")
            out.append(line)
        return out


class DownloadConfig(BaseModel):
    """What to download and where. Tag searches are kept as typed on the site."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    directory: str = "downloads"
    naming_convention: Literal["md5", "id"] = "md5"
    favorites: bool = True

    artists: list[str] = Field(default_factory=list)
    general: list[str] = Field(default_factory=list)
    pools: list[PositiveInt] = Field(default_factory=list)
    sets: list[PositiveInt] = Field(default_factory=list)
    posts: list[PositiveInt] = Field(default_factory=list)

    @field_validator("directory")
    @classmethod
    def _directory_must_be_set(cls, v: str) -> str:
        d = (v or "").strip()
        if not d:
            raise ValueError("must be a non-empty path")
        return d

    @field_validator("artists", "general")
    @classmethod
    def _clean_searches(cls, v: list[str]) -> list[str]:
        out: list[str] = []
        for item in v:
            search = " ".join((item or "").split())
            if search and search not in out:
                out.append(search)
        return out

    @field_validator("pools", "sets", "posts")
    @classmethod
    def _dedupe_ids(cls, v: list[int]) -> list[int]:
        return list(dict.fromkeys(v))

    @property
    def is_empty(self) -> bool:
        return not (self.artists or self.general or self.pools or self.sets or self.posts)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    site: SiteConfig = Field(default_factory=SiteConfig)
    login: LoginConfig = Field(default_factory=LoginConfig)
    blacklist: BlacklistConfig = Field(default_factory=BlacklistConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
