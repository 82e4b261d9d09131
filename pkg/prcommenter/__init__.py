"""Resolve line comments onto pull request diff positions."""

from .comments import CommentInputError, CommentRequest
from .diff import ChangedLine, Diff, DiffParseError, DiffPatch, parse_diff
from .resolver import ResolvedComment, filter_applicable, resolve_comments, resolve_position

__all__ = [
    "ChangedLine",
    "CommentInputError",
    "CommentRequest",
    "Diff",
    "DiffParseError",
    "DiffPatch",
    "ResolvedComment",
    "filter_applicable",
    "parse_diff",
    "resolve_comments",
    "resolve_position",
]
