from __future__ import annotations

import pytest

from adapters.trace.position_resolver import (
    PositionOutOfRangeError,
    format_label,
    node_label,
    resolve_offset,
)
from contracts import RawValue, TraceSnapshot


def test_resolve_offset_counts_preceding_lines_and_newlines():
    assert resolve_offset("a.b\nc.d", 1, 2) == 6


def test_resolve_offset_on_first_line_is_the_column():
    assert resolve_offset("Patient.name", 0, 8) == 8


def test_resolve_offset_over_several_lines():
    source = "name\n  .where(use = 'official')\n  .given"

    assert resolve_offset(source, 2, 3) == len("name") + 1 + len("  .where(use = 'official')") + 1 + 3


def test_resolve_offset_rejects_line_past_end_of_text():
    with pytest.raises(PositionOutOfRangeError):
        resolve_offset("a.b", 3, 0)


def test_position_error_is_a_value_error():
    assert issubclass(PositionOutOfRangeError, ValueError)


def test_node_label_and_format_label():
    snapshot = TraceSnapshot(
        name="d",
        kind="MemberInvocation",
        line=1,
        column=2,
        length=1,
        values=[RawValue(type_name="String", data="x")],
        focus_values=[RawValue(), RawValue()],
    )

    assert node_label("a.b\nc.d", snapshot) == "6,1,d"
    assert format_label("a.b\nc.d", snapshot) == "6,1,d: focus=2 result=1  type=MemberInvocation"


def test_labels_without_position_or_length():
    snapshot = TraceSnapshot(name="[]", kind="IndexerExpression")

    assert node_label("name[0]", snapshot) == "0,,[]"
