from __future__ import annotations

import subprocess

import pytest

import pkg.prcommenter.git as git
from pkg.prcommenter.git import GitCommandError


def _fake_run(calls, *, returncode=0, stdout="", stderr=""):
    def run(cmd, **kwargs):
        calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(args=cmd, returncode=returncode, stdout=stdout, stderr=stderr)

    return run


def test_diff_against_working_tree(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(git.subprocess, "run", _fake_run(calls, stdout="diff text"))

    assert git.diff("abc123") == "diff text"
    cmd, kwargs = calls[0]
    assert cmd[:2] == ["git", "diff"]
    assert cmd[-1] == "abc123"
    assert "--dst-prefix=b/" in cmd
    assert kwargs["check"] is False


def test_diff_between_revisions(monkeypatch, tmp_path) -> None:
    calls = []
    monkeypatch.setattr(git.subprocess, "run", _fake_run(calls))

    git.diff("abc", "def", cwd=tmp_path)

    cmd, kwargs = calls[0]
    assert cmd[-2:] == ["abc", "def"]
    assert kwargs["cwd"] == tmp_path


def test_diff_rejects_option_like_revisions(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(git.subprocess, "run", _fake_run(calls))

    with pytest.raises(GitCommandError, match="looks like an option"):
        git.diff("--output=/tmp/x")
    with pytest.raises(GitCommandError, match="looks like an option"):
        git.diff("abc", "-p")
    assert calls == []


def test_failure_raises_with_stderr(monkeypatch) -> None:
    monkeypatch.setattr(
        git.subprocess, "run", _fake_run([], returncode=128, stderr="fatal: bad revision 'zzz'\n")
    )

    with pytest.raises(GitCommandError, match="bad revision"):
        git.diff("zzz")


def test_head_sha(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(git.subprocess, "run", _fake_run(calls, stdout="0123abcd\n"))

    assert git.head_sha() == "0123abcd"
    assert calls[0][0] == ["git", "log", "-n", "1", "--pretty=%H"]
