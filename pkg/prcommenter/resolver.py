"""Map comment requests onto patch positions of a parsed diff.

The resolver never reads a diff itself. Callers resolve twice with two
independently parsed diffs: one spanning the applicability range (is the
commented line touched by the recent revisions?) and one spanning the whole
pull request (where does the comment attach in the PR's patch?).

A miss is a normal outcome: `resolve_position` returns None and the request
is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .comments import CommentRequest
from .diff import Diff


@dataclass(frozen=True)
class ResolvedComment:
    position: int
    request: CommentRequest


def resolve_position(diff: Diff, request: CommentRequest) -> int | None:
    """Return the patch position of `request`'s line, or None when not in the diff.

    Requires an exact (file, line) match against an added line.
    """
    if request.file is None or request.line is None:
        return None

    patch = diff.patch_for(request.file)
    if patch is None:
        return None

    for changed in patch.changed_lines:
        if changed.new_line_number == request.line:
            return changed.patch_position
        if changed.new_line_number > request.line:
            break
    return None


def filter_applicable(diff: Diff, requests: Iterable[CommentRequest]) -> list[CommentRequest]:
    """Keep requests whose line is touched by `diff`, in input order."""
    applicable: list[CommentRequest] = []
    for request in requests:
        if not request.is_line_comment:
            # TODO: post pull-request level comments once a target endpoint is chosen.
            continue
        if resolve_position(diff, request) is not None:
            applicable.append(request)
    return applicable


def resolve_comments(diff: Diff, requests: Iterable[CommentRequest]) -> list[ResolvedComment]:
    """Pair each resolvable request with its position, dropping the rest."""
    resolved: list[ResolvedComment] = []
    for request in requests:
        position = resolve_position(diff, request)
        if position is None:
            continue
        resolved.append(ResolvedComment(position=position, request=request))
    return resolved
