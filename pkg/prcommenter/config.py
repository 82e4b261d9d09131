"""Typed options for posting PR comments, plus the YAML config-file layer.

Options are layered: built-in defaults, then a config file, then command-line
flags, then values completed from a CI provider's environment.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .comments import SUPPORTED_INPUT_FORMATS

DEFAULT_GITHUB_API = "https://api.github.com"


class ConfigError(RuntimeError):
    """Invalid or incomplete options."""


@dataclass(frozen=True)
class CommenterOptions:
    """Everything needed to resolve and post one batch of comments."""
    github: str = DEFAULT_GITHUB_API
    repo: str | None = None
    pr: int | None = None
    github_access_token: str | None = None
    after: str | None = None
    until: str | None = None
    head: str | None = None
    input_format: str = "ltsv"
    debug: bool = False
    from_env: str | None = None

    def merged(self, overrides: Mapping[str, Any]) -> "CommenterOptions":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in dataclasses.fields(self)}
        changes: dict[str, Any] = {}
        for key, value in overrides.items():
            name = key.replace("-", "_")
            if name not in known:
                raise ConfigError(f"unknown option: {key}")
            if value is None:
                continue
            changes[name] = value
        return _validate(dataclasses.replace(self, **changes))

    @property
    def github_host(self) -> str:
        return github_host(self.github)

    def validate_for_posting(self) -> None:
        if not self.repo:
            raise ConfigError("repo: missing (use --repo or --from-env)")
        owner, sep, name = self.repo.partition("/")
        if not sep or not owner or not name or "/" in name:
            raise ConfigError(f"repo: expected owner/name, got {self.repo!r}")
        if self.pr is None:
            raise ConfigError("pr: missing (use --pr or --from-env)")
        if not self.github_access_token:
            raise ConfigError(
                "github_access_token: missing (use --github-access-token or GITHUB_ACCESS_TOKEN)"
            )


def github_host(api_url: str) -> str:
    """Hostname `gh --hostname` expects for an API endpoint."""
    parsed = urlparse(api_url if "//" in api_url else f"https://{api_url}")
    host = (parsed.hostname or "").lower()
    if not host:
        raise ConfigError(f"github: cannot derive host from {api_url!r}")
    if host == "api.github.com":
        return "github.com"
    return host


def _require_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    if not s:
        raise ConfigError(f"{ctx}: must be non-empty")
    return s


def _optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    return s or None


def _require_positive_int(value: Any, ctx: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < 1:
        raise ConfigError(f"{ctx}: must be >= 1")
    return value


def _require_bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{ctx}: expected boolean")
    return value


def _validate(options: CommenterOptions) -> CommenterOptions:
    github_host(_require_str(options.github, "github"))
    _optional_str(options.repo, "repo")
    if options.pr is not None:
        _require_positive_int(options.pr, "pr")
    _optional_str(options.github_access_token, "github_access_token")
    _optional_str(options.after, "after")
    _optional_str(options.until, "until")
    _optional_str(options.head, "head")
    if options.input_format not in SUPPORTED_INPUT_FORMATS:
        raise ConfigError(
            f"input_format: must be one of {sorted(SUPPORTED_INPUT_FORMATS)}"
        )
    _require_bool(options.debug, "debug")
    _optional_str(options.from_env, "from_env")
    return options


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text())
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def load_config(path: Path) -> dict[str, Any]:
    """Load option defaults from a YAML mapping.

    An empty file yields no defaults. Keys may be snake_case or kebab-case.
    """
    raw = _load_yaml(path)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config: expected mapping")

    known = {f.name for f in dataclasses.fields(CommenterOptions)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        name = _require_str(key, "config key").replace("-", "_")
        if name not in known:
            raise ConfigError(f"config.{key}: unknown option")
        values[name] = value

    # Validate types eagerly so a bad file fails before any flag is merged.
    CommenterOptions().merged(values)
    return values
