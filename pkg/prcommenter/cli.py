"""Post line comments to a pull request.

Comments name a file and a line of the working tree. Each one is kept only if
the line was added within the applicability range (`--after`..`--until`),
then anchored to its `position` in the pull request's patch and posted as a
review comment on the local HEAD commit (or `--head`).
"""

from __future__ import annotations

import argparse
import os
import select
import stat
import subprocess
import sys
from pathlib import Path
from typing import Callable, Mapping, NoReturn, Sequence, TextIO

from . import git
from .comments import CommentInputError, CommentRequest, comment_from_options, parse_comments
from .config import CommenterOptions, ConfigError, load_config
from .diff import DiffParseError, parse_diff
from .environment import COMPLETERS, EnvironmentCompletionError, complete_from_environment
from .git import GitCommandError
from .github import (
    CommentPermissionError,
    GitHubClient,
    PullRequestComment,
    TransientGitHubError,
)
from .resolver import filter_applicable, resolve_comments

DiffReader = Callable[..., str]


def fail(message: str, code: int = 2) -> NoReturn:
    """Fail."""
    print(f"prcommenter: {message}", file=sys.stderr)
    sys.exit(code)


def error(message: str) -> None:
    print(f"::error::{message}", file=sys.stderr)


def warn(message: str) -> None:
    """Warn."""
    print(f"::warning::{message}", file=sys.stderr)


def notice(message: str) -> None:
    """Notice."""
    print(f"::notice::{message}", file=sys.stderr)


def stdin_has_data(stream: TextIO) -> bool:
    """True when stdin is a pipe/file or already has bytes waiting."""
    try:
        mode = os.fstat(stream.fileno()).st_mode
    except (AttributeError, OSError, ValueError):
        return False
    if stat.S_ISFIFO(mode) or stat.S_ISREG(mode):
        return True
    if stream.isatty():
        return False
    ready, _, _ = select.select([stream], [], [], 0)
    return bool(ready)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="prcommenter", description="Post line comments to a GitHub pull request.")
    sub = p.add_subparsers(dest="command", required=True)

    pr = sub.add_parser("pr", help="comment to a pull request")
    pr.add_argument("--config", default=None, help="YAML file with option defaults")
    pr.add_argument(
        "--from-env",
        choices=sorted(COMPLETERS),
        default=None,
        help="complete github/repo/pr/after/until/head from CI environment variables (overrides flags)",
    )

    pr.add_argument("--github", default=None, help="GitHub API endpoint (default: https://api.github.com)")
    pr.add_argument("--repo", default=None, help="repository, e.g. owner/name")
    pr.add_argument("--pr", type=int, default=None, help="pull request number")
    pr.add_argument(
        "--github-access-token",
        default=None,
        help="API token (default: env GITHUB_ACCESS_TOKEN)",
    )

    pr.add_argument("--after", default=None, help="only comment on lines added after this revision (default: PR base)")
    pr.add_argument("--until", default=None, help="only comment on lines added up to this revision (default: working tree)")
    pr.add_argument("--head", default=None, help="commit to attach comments to (default: local HEAD)")

    pr.add_argument(
        "--input-format",
        choices=["ltsv"],
        default=None,
        help="format of comments read from stdin (default: ltsv)",
    )
    pr.add_argument("--message", default=None, help="comment body when stdin is empty")
    pr.add_argument("--file", default=None, help="target file when stdin is empty")
    pr.add_argument(
        "--line",
        type=int,
        default=None,
        help="line number in the target file when stdin is empty (not a diff position)",
    )
    pr.add_argument("--debug", action="store_true", help="print comments instead of posting them")
    return p


def build_options(args: argparse.Namespace, env: Mapping[str, str]) -> CommenterOptions:
    """Layer defaults, config file, flags, then CI completion."""
    options = CommenterOptions()
    if args.config:
        options = options.merged(load_config(Path(args.config)))

    options = options.merged(
        {
            "github": args.github,
            "repo": args.repo,
            "pr": args.pr,
            "github_access_token": args.github_access_token or env.get("GITHUB_ACCESS_TOKEN") or None,
            "after": args.after,
            "until": args.until,
            "head": args.head,
            "input_format": args.input_format,
            "debug": True if args.debug else None,
            "from_env": args.from_env,
        }
    )
    return options.merged(complete_from_environment(options.from_env, env))


def collect_comments(
    args: argparse.Namespace, options: CommenterOptions, stdin: TextIO
) -> list[CommentRequest]:
    if stdin_has_data(stdin):
        text = stdin.read()
        if text.strip():
            return parse_comments(text, options.input_format)

    explicit = comment_from_options(args.file, args.line, args.message)
    if explicit is None:
        raise CommentInputError("no comments found: pipe them to stdin or use --message/--file/--line")
    return [explicit]


def post_pr_comments(
    options: CommenterOptions,
    comments: Sequence[CommentRequest],
    *,
    client: GitHubClient,
    read_diff: DiffReader = git.diff,
    read_head: Callable[[], str] = git.head_sha,
) -> int:
    """Resolve and post `comments`; return how many were (or would be) posted.

    Both diffs are parsed before anything is posted, so a malformed diff
    aborts the whole batch.
    """
    options.validate_for_posting()
    base = client.base_sha(options.repo, options.pr)

    applicability_diff = parse_diff(read_diff(options.after or base, options.until))
    applicable = filter_applicable(applicability_diff, comments)

    head = options.head or read_head()
    posting_diff = parse_diff(read_diff(base))
    resolved = resolve_comments(posting_diff, applicable)

    dropped = len(comments) - len(resolved)
    if dropped:
        notice(f"{dropped}/{len(comments)} comments do not apply to changed lines; skipped.")

    for item in resolved:
        request = item.request
        if options.debug:
            warn(
                f"PR comment to {options.repo}/pulls/{options.pr}@{head}"
                f"#{request.file}:{item.position} => {request.message}"
            )
            continue
        client.create_pull_request_comment(
            options.repo,
            options.pr,
            PullRequestComment(
                commit_id=head,
                path=request.file or "",
                position=item.position,
                body=request.message,
            ),
        )
    return len(resolved)


def main(argv: Sequence[str] | None = None, *, stdin: TextIO | None = None) -> None:
    """Main."""
    args = build_parser().parse_args(argv)
    env = os.environ

    try:
        options = build_options(args, env)
        comments = collect_comments(args, options, stdin if stdin is not None else sys.stdin)
        options.validate_for_posting()
        host = options.github_host
    except (ConfigError, CommentInputError, EnvironmentCompletionError) as exc:
        fail(str(exc))

    client = GitHubClient(host=host, token=options.github_access_token)

    try:
        posted = post_pr_comments(options, comments, client=client)
    except DiffParseError as exc:
        error(f"unable to parse diff: {exc}")
        sys.exit(1)
    except GitCommandError as exc:
        error(str(exc))
        sys.exit(1)
    except CommentPermissionError as exc:
        error(str(exc))
        sys.exit(1)
    except TransientGitHubError as exc:
        # GitHub outages must not fail the CI job.
        warn(str(exc))
        sys.exit(0)
    except subprocess.CalledProcessError as exc:
        error(f"gh command failed: {exc.stderr}")
        sys.exit(1)
    except ValueError as exc:
        error(str(exc))
        sys.exit(1)

    verb = "Would post" if options.debug else "Posted"
    notice(f"{verb} {posted} comment(s) to {options.repo}#{options.pr}.")


if __name__ == "__main__":
    main()
