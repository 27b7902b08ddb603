from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError


@dataclass(frozen=True)
class Credentials:
    username: str = ""
    api_key: str = ""

    @property
    def is_anonymous(self) -> bool:
        return not (self.username and self.api_key)

    def __repr__(self) -> str:
        masked = "*" * len(self.api_key)
        return f"Credentials(username={self.username!r}, api_key={masked!r})"


def load_config(path: str | Path) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e


def resolve_credentials(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> Credentials:
    """
    Read the API key for the configured user from the environment.

    No username means an anonymous session. A username without a non-empty
    API key is a configuration error.
    """
    username = config.login.username
    if not username:
        return Credentials()

    env = os.environ if environ is None else environ
    key_env = config.login.api_key_env
    api_key = (env.get(key_env) or "").strip()
    if not api_key:
        raise ConfigError(
            f"Missing required environment variable {key_env} for user {username!r}"
        )

    return Credentials(username=username, api_key=api_key)


def config_sha256(config: AppConfig) -> str:
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    lines: list[str] = [f"Invalid configuration in {path}:"]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)
