"""Thin wrapper over the `git` CLI for diff text and the head revision."""

from __future__ import annotations

import subprocess
from pathlib import Path


class GitCommandError(RuntimeError):
    """git exited non-zero or was given an unsafe argument."""


def _check_revision(rev: str) -> str:
    rev = (rev or "").strip()
    if not rev:
        raise GitCommandError("revision cannot be empty")
    if rev.startswith("-"):
        raise GitCommandError(f"refusing revision that looks like an option: {rev!r}")
    return rev


def _run_git(args: list[str], *, cwd: str | Path | None = None) -> str:
    try:
        result = subprocess.run(
            ["git", *args], capture_output=True, text=True, check=False, cwd=cwd
        )
    except FileNotFoundError as exc:
        raise GitCommandError("git executable not found") from exc
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        raise GitCommandError(f"git {' '.join(args)} failed ({result.returncode}): {stderr}")
    return result.stdout


def diff(base: str, until: str | None = None, *, cwd: str | Path | None = None) -> str:
    """`git diff base [until]`; without `until` the working tree is compared."""
    # Pin prefixes so a user's diff.noPrefix setting cannot change paths.
    args = [
        "diff",
        "--no-color",
        "--no-ext-diff",
        "--src-prefix=a/",
        "--dst-prefix=b/",
        _check_revision(base),
    ]
    if until:
        args.append(_check_revision(until))
    return _run_git(args, cwd=cwd)


def head_sha(*, cwd: str | Path | None = None) -> str:
    sha = _run_git(["log", "-n", "1", "--pretty=%H"], cwd=cwd).strip()
    if not sha:
        raise GitCommandError("git log returned no commit")
    return sha
