"""Complete options from the environment of a CI provider.

Each provider is a strategy with a `complete(env)` method returning the
partial options it could infer. Register new providers in `COMPLETERS`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

from .config import DEFAULT_GITHUB_API

_COMPARE_URL_RE = re.compile(
    r"^https?://(?P<host>[^/]+)/(?P<organization>[^/]+)/(?P<repository>[^/]+)"
    r"/compare/(?P<after>[^./][^/]*?)\.\.\.(?P<until>[^/]+?)/?$"
)

PULL_REQUEST_EVENTS = {"pull_request", "pull_request_target"}


class EnvironmentCompletionError(RuntimeError):
    """CI environment is present but cannot be interpreted."""


class EnvironmentCompleter(Protocol):
    def complete(self, env: Mapping[str, str]) -> dict[str, Any]:
        ...


def api_url_for_host(host: str) -> str:
    if host.lower() == "github.com":
        return DEFAULT_GITHUB_API
    return f"https://{host}/api/v3"


@dataclass(frozen=True)
class CircleCICompleter:
    """CircleCI 2.0 variables: CI_PULL_REQUEST and CIRCLE_COMPARE_URL."""

    def complete(self, env: Mapping[str, str]) -> dict[str, Any]:
        pr_url = (env.get("CI_PULL_REQUEST") or "").strip()
        if not pr_url:
            return {}

        pr_segment = pr_url.rstrip("/").rsplit("/", 1)[-1]
        if not pr_segment.isdigit():
            raise EnvironmentCompletionError(
                f"CI_PULL_REQUEST does not end in a PR number: {pr_url}"
            )

        compare_url = (env.get("CIRCLE_COMPARE_URL") or "").strip()
        m = _COMPARE_URL_RE.match(compare_url)
        if not m:
            raise EnvironmentCompletionError(
                f"CIRCLE_COMPARE_URL is not a compare URL: {compare_url or '<unset>'}"
            )

        return {
            "github": api_url_for_host(m.group("host")),
            "repo": f"{m.group('organization')}/{m.group('repository')}",
            "pr": int(pr_segment),
            "after": m.group("after"),
            "until": m.group("until"),
        }


def _read_event(path: str) -> dict[str, Any]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise EnvironmentCompletionError(f"unable to read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise EnvironmentCompletionError(f"invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise EnvironmentCompletionError(f"event payload in {path} is not an object")
    return data


@dataclass(frozen=True)
class GitHubActionsCompleter:
    """GitHub Actions pull_request events, read from GITHUB_EVENT_PATH."""

    def complete(self, env: Mapping[str, str]) -> dict[str, Any]:
        if (env.get("GITHUB_EVENT_NAME") or "").strip() not in PULL_REQUEST_EVENTS:
            return {}

        event_path = (env.get("GITHUB_EVENT_PATH") or "").strip()
        if not event_path:
            raise EnvironmentCompletionError("GITHUB_EVENT_PATH is not set")
        event = _read_event(event_path)

        pull_request = event.get("pull_request")
        number = pull_request.get("number") if isinstance(pull_request, dict) else None
        if isinstance(number, bool) or not isinstance(number, int):
            number = event.get("number")
        if isinstance(number, bool) or not isinstance(number, int):
            raise EnvironmentCompletionError("event payload has no pull request number")

        completed: dict[str, Any] = {"pr": number}

        api_url = (env.get("GITHUB_API_URL") or "").strip()
        if api_url:
            completed["github"] = api_url
        repo = (env.get("GITHUB_REPOSITORY") or "").strip()
        if repo:
            completed["repo"] = repo

        # The checkout is the synthetic merge commit, which is not part of the
        # pull request; comments must be attached to the PR head instead.
        head = pull_request.get("head") if isinstance(pull_request, dict) else None
        head_sha = head.get("sha") if isinstance(head, dict) else None
        if isinstance(head_sha, str) and head_sha.strip():
            completed["head"] = head_sha.strip()

        # Only a push to the PR branch has a meaningful range to re-check.
        if event.get("action") == "synchronize":
            before = event.get("before")
            after = event.get("after")
            if isinstance(before, str) and before and isinstance(after, str) and after:
                completed["after"] = before
                completed["until"] = after

        return completed


COMPLETERS: dict[str, EnvironmentCompleter] = {
    "circleci": CircleCICompleter(),
    "github-actions": GitHubActionsCompleter(),
}


def complete_from_environment(name: str | None, env: Mapping[str, str]) -> dict[str, Any]:
    """Run the named provider's completer; no name means nothing to complete."""
    if not name:
        return {}
    completer = COMPLETERS.get(name)
    if completer is None:
        raise EnvironmentCompletionError(
            f"unknown CI provider {name!r} (known: {', '.join(sorted(COMPLETERS))})"
        )
    return completer.complete(env)
