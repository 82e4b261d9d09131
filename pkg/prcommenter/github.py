"""GitHub pull request utilities on top of the `gh` CLI.

Intentionally small: read a pull request and create one review comment
anchored to a diff `position`.
"""
from __future__ import annotations

import json
import os
import random
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass
from typing import Mapping


class CommentPermissionError(Exception):
    """Token lacks pull-requests: write permission."""


class TransientGitHubError(Exception):
    """GitHub API returned a transient error (5xx)."""


def _is_transient_error(stderr: str) -> bool:
    """Check if error is a transient GitHub API error (5xx)."""
    transient_codes = ("502", "503", "504")
    lower_stderr = stderr.lower()
    # gh prints "(HTTP 503)"; raw API errors print "HTTP 503".
    return any(
        f"(http {code})" in lower_stderr or f"http {code}" in lower_stderr
        for code in transient_codes
    )


def _run_gh(
    args: list[str],
    *,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run a gh CLI command with retry logic for transient errors.

    Args:
        args: Arguments to pass to gh CLI
        env: Extra environment variables (token) layered over os.environ
        check: Whether to raise on non-zero exit code
        max_retries: Maximum number of attempts for transient errors
        base_delay: Base delay in seconds between retries (exponential backoff)

    Raises:
        CommentPermissionError: Token lacks pull-requests: write permission
        TransientGitHubError: GitHub API returned 5xx after all retries
        subprocess.CalledProcessError: Other gh CLI failures
    """
    full_env = {**os.environ, **env} if env else None
    for attempt in range(max_retries):
        result = subprocess.run(
            ["gh", *args], capture_output=True, text=True, check=False, env=full_env
        )

        if result.returncode == 0:
            return result

        stderr = (result.stderr or "").lower()

        if any(s in stderr for s in ("403", "resource not accessible", "insufficient")):
            raise CommentPermissionError(
                "Unable to post PR comment: token lacks pull-requests: write permission."
            )

        if _is_transient_error(result.stderr or ""):
            if attempt < max_retries - 1:
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
                print(
                    f"::warning::GitHub API error (attempt {attempt + 1}/{max_retries}), "
                    f"retrying in {delay:.1f}s...",
                    file=sys.stderr,
                )
                time.sleep(delay)
                continue
            raise TransientGitHubError(
                f"GitHub API returned transient error after {max_retries} attempts: "
                f"{result.stderr}"
            )

        if check:
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )
        return result

    raise RuntimeError("_run_gh retry loop exited unexpectedly")


@dataclass(frozen=True)
class PullRequestComment:
    commit_id: str
    path: str
    position: int
    body: str


@dataclass(frozen=True)
class GitHubClient:
    """Calls the API of one GitHub host with one token."""

    host: str = "github.com"
    token: str | None = None

    def _env(self) -> dict[str, str]:
        if not self.token:
            return {}
        # gh reads GH_ENTERPRISE_TOKEN for non-github.com hosts.
        return {"GH_TOKEN": self.token, "GH_ENTERPRISE_TOKEN": self.token}

    def _api(self, args: list[str]) -> subprocess.CompletedProcess[str]:
        return _run_gh(["api", "--hostname", self.host, *args], env=self._env())

    def pull_request(self, repo: str, pr_number: int) -> dict:
        result = self._api([f"repos/{repo}/pulls/{pr_number}"])
        data = json.loads(result.stdout or "{}")
        return data if isinstance(data, dict) else {}

    def base_sha(self, repo: str, pr_number: int) -> str:
        base = self.pull_request(repo, pr_number).get("base")
        sha = base.get("sha") if isinstance(base, dict) else None
        if not isinstance(sha, str) or not sha.strip():
            raise ValueError(f"pull request {repo}#{pr_number} has no base sha")
        return sha.strip()

    def create_pull_request_comment(
        self, repo: str, pr_number: int, comment: PullRequestComment
    ) -> dict:
        payload = {
            "body": comment.body,
            "commit_id": comment.commit_id,
            "path": comment.path,
            "position": comment.position,
        }

        with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".json", delete=False) as handle:
            json.dump(payload, handle)
            tmp_path = handle.name

        try:
            result = self._api(
                ["-X", "POST", f"repos/{repo}/pulls/{pr_number}/comments", "--input", tmp_path]
            )
        finally:
            os.unlink(tmp_path)
        data = json.loads(result.stdout or "{}")
        return data if isinstance(data, dict) else {}
