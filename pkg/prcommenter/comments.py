"""Comment requests and the sources they are decoded from."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

SUPPORTED_INPUT_FORMATS = {"ltsv"}


class CommentInputError(ValueError):
    """Comment input is missing fields or cannot be decoded."""


def _coerce_line(value: Any) -> int:
    if isinstance(value, bool):
        raise CommentInputError("line must be an integer")
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise CommentInputError(f"line must be a positive integer, got {value!r}")
        value = int(text)
    if not isinstance(value, int):
        raise CommentInputError("line must be an integer")
    if value <= 0:
        raise CommentInputError("line must be greater than zero")
    return value


@dataclass(frozen=True)
class CommentRequest:
    """One comment to post.

    `line` is the 1-based line in the current working-tree file, not a diff
    position. A request without `file` targets the pull request as a whole.
    """

    message: str
    file: str | None = None
    line: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.message, str) or not self.message:
            raise CommentInputError("message cannot be empty")
        if (self.file is None) != (self.line is None):
            raise CommentInputError("file and line must be given together")
        if self.file is not None:
            if not isinstance(self.file, str) or not self.file.strip():
                raise CommentInputError("file cannot be empty")
            object.__setattr__(self, "line", _coerce_line(self.line))

    @property
    def is_line_comment(self) -> bool:
        return self.file is not None


def comment_from_options(
    file: str | None, line: int | str | None, message: str | None
) -> CommentRequest | None:
    """Build a request from explicit options, or None unless all three are set."""
    if not (message and file and line):
        return None
    return CommentRequest(message=message, file=file, line=_coerce_line(line))


def _parse_ltsv_record(raw: str) -> dict[str, str]:
    record: dict[str, str] = {}
    for field in raw.split("\t"):
        if not field:
            continue
        label, sep, value = field.partition(":")
        if not sep:
            raise CommentInputError(f"field without label: {field!r}")
        record[label] = value
    return record


def parse_ltsv_comments(text: str) -> list[CommentRequest]:
    """Decode LTSV records (`file:...<TAB>line:...<TAB>message:...`).

    Blank lines are skipped and unknown labels ignored.
    """
    comments: list[CommentRequest] = []
    for number, raw in enumerate((text or "").splitlines(), start=1):
        if not raw.strip():
            continue
        try:
            record = _parse_ltsv_record(raw)
            comments.append(
                CommentRequest(
                    message=record.get("message", ""),
                    file=record.get("file") or None,
                    line=record.get("line") or None,
                )
            )
        except CommentInputError as exc:
            raise CommentInputError(f"record {number}: {exc}") from exc
    return comments


def parse_comments(text: str, input_format: str = "ltsv") -> list[CommentRequest]:
    fmt = (input_format or "").strip().lower()
    if fmt == "ltsv":
        return parse_ltsv_comments(text)
    raise CommentInputError(f"unknown input format: {input_format}")
