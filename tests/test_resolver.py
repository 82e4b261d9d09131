from __future__ import annotations

from pkg.prcommenter.comments import CommentRequest
from pkg.prcommenter.diff import ChangedLine, Diff, DiffPatch, parse_diff
from pkg.prcommenter.resolver import (
    ResolvedComment,
    filter_applicable,
    resolve_comments,
    resolve_position,
)


def _diff_with_a_rb() -> Diff:
    return Diff(
        patches=(
            DiffPatch(
                path="a.rb",
                changed_lines=(
                    ChangedLine(new_line_number=4, patch_position=1),
                    ChangedLine(new_line_number=10, patch_position=3),
                ),
            ),
        )
    )


def test_resolves_exact_file_and_line() -> None:
    diff = _diff_with_a_rb()

    assert resolve_position(diff, CommentRequest(file="a.rb", line=10, message="m")) == 3
    assert resolve_position(diff, CommentRequest(file="a.rb", line=4, message="m")) == 1


def test_line_not_changed_is_not_found() -> None:
    diff = _diff_with_a_rb()

    assert resolve_position(diff, CommentRequest(file="a.rb", line=11, message="m")) is None
    assert resolve_position(diff, CommentRequest(file="a.rb", line=9, message="m")) is None


def test_file_absent_from_diff_is_not_found() -> None:
    diff = _diff_with_a_rb()

    assert resolve_position(diff, CommentRequest(file="b.rb", line=10, message="m")) is None


def test_pull_request_level_request_is_not_found() -> None:
    assert resolve_position(_diff_with_a_rb(), CommentRequest(message="overall")) is None


def test_resolves_against_parsed_diff(single_file_diff_text: str) -> None:
    diff = parse_diff(single_file_diff_text)

    assert resolve_position(diff, CommentRequest(file="a.rb", line=10, message="m")) == 3
    # line 11 is context in the patch, not an added line
    assert resolve_position(diff, CommentRequest(file="a.rb", line=11, message="m")) is None
    assert resolve_position(diff, CommentRequest(file="b.rb", line=10, message="m")) is None


def test_context_lines_are_not_targets(multi_file_diff_text: str) -> None:
    diff = parse_diff(multi_file_diff_text)

    assert resolve_position(diff, CommentRequest(file="lib/app.py", line=23, message="m")) == 11
    assert resolve_position(diff, CommentRequest(file="lib/app.py", line=21, message="m")) is None
    assert resolve_position(diff, CommentRequest(file="old.txt", line=1, message="m")) is None


def test_filter_applicable_keeps_order_and_drops_unresolvable() -> None:
    first = CommentRequest(file="a.rb", line=10, message="first")
    second = CommentRequest(file="a.rb", line=11, message="second")
    third = CommentRequest(file="a.rb", line=4, message="third")

    assert filter_applicable(_diff_with_a_rb(), [first, second, third]) == [first, third]


def test_filter_applicable_is_idempotent() -> None:
    diff = _diff_with_a_rb()
    requests = [
        CommentRequest(file="a.rb", line=4, message="x"),
        CommentRequest(file="b.rb", line=1, message="y"),
        CommentRequest(file="a.rb", line=10, message="z"),
    ]

    once = filter_applicable(diff, requests)
    assert filter_applicable(diff, once) == once


def test_filter_applicable_always_excludes_file_less_requests() -> None:
    diff = _diff_with_a_rb()
    requests = [CommentRequest(message="overall"), CommentRequest(file="a.rb", line=10, message="m")]

    assert filter_applicable(diff, requests) == [requests[1]]
    assert filter_applicable(Diff(), [CommentRequest(message="overall")]) == []


def test_filter_applicable_accepts_any_iterable() -> None:
    diff = _diff_with_a_rb()
    gen = (CommentRequest(file="a.rb", line=n, message="m") for n in (10, 12))

    assert [r.line for r in filter_applicable(diff, gen)] == [10]


def test_resolve_comments_pairs_positions_in_order() -> None:
    diff = _diff_with_a_rb()
    a = CommentRequest(file="a.rb", line=10, message="a")
    b = CommentRequest(file="c.rb", line=1, message="b")
    c = CommentRequest(file="a.rb", line=4, message="c")

    assert resolve_comments(diff, [a, b, c]) == [
        ResolvedComment(position=3, request=a),
        ResolvedComment(position=1, request=c),
    ]


def test_applicability_and_posting_use_independent_diffs(multi_file_diff_text: str) -> None:
    # the recent range only touched line 23; the PR as a whole touched 2, 5, 22, 23
    recent = Diff(
        patches=(DiffPatch(path="lib/app.py", changed_lines=(ChangedLine(23, 4),)),)
    )
    whole = parse_diff(multi_file_diff_text)
    requests = [
        CommentRequest(file="lib/app.py", line=2, message="stale"),
        CommentRequest(file="lib/app.py", line=23, message="fresh"),
    ]

    applicable = filter_applicable(recent, requests)
    resolved = resolve_comments(whole, applicable)

    assert [(r.position, r.request.message) for r in resolved] == [(11, "fresh")]
