"""Unified diff model for GitHub PR review comments.

GitHub's review comment API accepts `position`, a 1-indexed line offset
within a file's patch counted from the first `@@` hunk header. The line just
below that header is position 1; every later line of the file's patch
(further hunk headers, context, additions, deletions and "No newline"
markers) advances the position by one.

`parse_diff` turns `git diff` output into a `Diff`: one `DiffPatch` per file
that has a new-file side, each holding the added lines with their new-file
line number and patch position.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterator

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)

_C_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    '"': '"',
}


class DiffParseError(ValueError):
    """Diff text is not a well-formed unified diff."""


@dataclass(frozen=True)
class ChangedLine:
    new_line_number: int
    patch_position: int


@dataclass(frozen=True)
class DiffPatch:
    """Added lines of one file, in new-file order."""

    path: str
    changed_lines: tuple[ChangedLine, ...] = ()

    def __post_init__(self) -> None:
        previous: ChangedLine | None = None
        for line in self.changed_lines:
            if previous is not None and (
                line.new_line_number <= previous.new_line_number
                or line.patch_position <= previous.patch_position
            ):
                raise ValueError(f"{self.path}: changed lines must be strictly increasing")
            previous = line


@dataclass(frozen=True)
class Diff:
    """Per-file patches of one diff, at most one per path."""

    patches: tuple[DiffPatch, ...] = ()
    _by_path: dict[str, DiffPatch] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index: dict[str, DiffPatch] = {}
        for patch in self.patches:
            if patch.path in index:
                raise ValueError(f"duplicate patch for path: {patch.path}")
            index[patch.path] = patch
        object.__setattr__(self, "_by_path", index)

    def patch_for(self, path: str) -> DiffPatch | None:
        return self._by_path.get(path)

    @property
    def paths(self) -> list[str]:
        return [patch.path for patch in self.patches]

    def __iter__(self) -> Iterator[DiffPatch]:
        return iter(self.patches)

    def __len__(self) -> int:
        return len(self.patches)


def _unquote(text: str) -> str:
    """Undo git's C-style quoting of paths with unusual characters."""
    if len(text) < 2 or not (text.startswith('"') and text.endswith('"')):
        return text
    body = text[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.extend(ch.encode("utf-8"))
            i += 1
            continue
        nxt = body[i + 1]
        octal = body[i + 1 : i + 4]
        if len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8))
            i += 4
            continue
        out.extend(_C_ESCAPES.get(nxt, nxt).encode("utf-8"))
        i += 2
    return out.decode("utf-8", errors="replace")


def _header_path(header: str) -> str:
    """Path from a `--- `/`+++ ` header, unquoted and without timestamp."""
    raw = header[4:]
    if "\t" in raw:
        # Plain `diff -u` appends a timestamp after a tab.
        raw = raw.split("\t", 1)[0]
    return _unquote(raw.strip())


def _new_file_path(header: str, *, prefixed: bool) -> str | None:
    """Path from a `+++ ` header, or None for a deleted file.

    The `b/` prefix is only stripped when the file section uses prefixes.
    """
    raw = _header_path(header)
    if raw == "/dev/null":
        return None
    if prefixed and raw.startswith("b/"):
        raw = raw[2:]
    return raw or None


class _FileSection:
    """Mutable accumulator for one file while the diff is being read."""

    def __init__(self, start_lineno: int, *, git_header: bool = False) -> None:
        self.start_lineno = start_lineno
        # `diff --git` sections always carry a/ and b/ prefixes.
        self.prefixed = git_header
        self.path: str | None = None
        self.saw_new_header = False
        self.hunks = 0
        self.position = 0
        self.new_line = 0
        self.old_remaining = 0
        self.new_remaining = 0
        self.changed: list[ChangedLine] = []

    @property
    def in_hunk(self) -> bool:
        return self.old_remaining > 0 or self.new_remaining > 0

    def to_patch(self) -> DiffPatch | None:
        if self.path is None or self.hunks == 0:
            return None
        return DiffPatch(path=self.path, changed_lines=tuple(self.changed))


def _start_hunk(section: _FileSection, raw: str, lineno: int) -> None:
    m = _HUNK_RE.match(raw)
    if not m:
        raise DiffParseError(f"line {lineno}: malformed hunk header: {raw!r}")
    if not section.saw_new_header:
        raise DiffParseError(f"line {lineno}: hunk header before '+++' file header")

    if section.hunks:
        section.position += 1
    section.hunks += 1
    section.old_remaining = int(m.group("old_count") or 1)
    section.new_remaining = int(m.group("new_count") or 1)
    section.new_line = int(m.group("new_start"))


def _consume_hunk_line(section: _FileSection, raw: str, lineno: int) -> None:
    prefix = raw[:1]
    section.position += 1

    # Editors sometimes strip the single space of an empty context line.
    if prefix in {" ", ""}:
        if section.old_remaining <= 0 or section.new_remaining <= 0:
            raise DiffParseError(f"line {lineno}: context line exceeds hunk counts")
        section.old_remaining -= 1
        section.new_remaining -= 1
        section.new_line += 1
    elif prefix == "+":
        if section.new_remaining <= 0:
            raise DiffParseError(f"line {lineno}: added line exceeds hunk counts")
        section.changed.append(
            ChangedLine(new_line_number=section.new_line, patch_position=section.position)
        )
        section.new_remaining -= 1
        section.new_line += 1
    elif prefix == "-":
        if section.old_remaining <= 0:
            raise DiffParseError(f"line {lineno}: removed line exceeds hunk counts")
        section.old_remaining -= 1
    elif prefix == "\\":
        # "\ No newline at end of file" is part of the patch text.
        pass
    else:
        raise DiffParseError(f"line {lineno}: unexpected line inside hunk: {raw!r}")


def parse_diff(text: str) -> Diff:
    """Parse `git diff` output into a `Diff`.

    Raises:
        DiffParseError: the text is not a well-formed unified diff.
    """
    patches: list[DiffPatch] = []
    seen: set[str] = set()
    section: _FileSection | None = None

    def _finish(current: _FileSection | None, lineno: int) -> None:
        if current is None:
            return
        if current.in_hunk:
            raise DiffParseError(
                f"line {lineno}: hunk ended early "
                f"({current.old_remaining} old / {current.new_remaining} new lines missing)"
            )
        patch = current.to_patch()
        if patch is None:
            return
        if patch.path in seen:
            raise DiffParseError(f"line {current.start_lineno}: duplicate patch for path {patch.path!r}")
        seen.add(patch.path)
        patches.append(patch)

    lines = (text or "").splitlines()
    for lineno, raw in enumerate(lines, start=1):
        if section is not None and section.in_hunk:
            if raw.startswith("diff --git "):
                _finish(section, lineno)
            _consume_hunk_line(section, raw, lineno)
            continue

        if raw.startswith("diff --git "):
            _finish(section, lineno)
            section = _FileSection(lineno, git_header=True)
            continue

        if raw.startswith("--- "):
            # A `---` header outside a hunk opens a new file unless it follows
            # the `diff --git` line of the current file.
            if section is None or section.hunks or section.saw_new_header:
                _finish(section, lineno)
                section = _FileSection(lineno)
            if _header_path(raw).startswith("a/"):
                section.prefixed = True
            continue

        if raw.startswith("+++ "):
            if section is None:
                raise DiffParseError(f"line {lineno}: '+++' header without a file section")
            section.path = _new_file_path(raw, prefixed=section.prefixed)
            section.saw_new_header = True
            continue

        if raw.startswith("@@"):
            if section is None:
                raise DiffParseError(f"line {lineno}: hunk header before any file header")
            _start_hunk(section, raw, lineno)
            continue

        if section is None:
            # Preamble (e.g. commit headers) before the first file.
            continue

        if section.hunks:
            if raw.startswith("\\"):
                section.position += 1
                continue
            if not raw:
                continue
            raise DiffParseError(f"line {lineno}: unexpected line after hunk: {raw!r}")

        # Extended headers: index, mode, rename/copy, similarity, binary.

    _finish(section, len(lines) + 1)
    return Diff(patches=tuple(patches))
