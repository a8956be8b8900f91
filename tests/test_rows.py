from __future__ import annotations

from dataclasses import replace

import pytest

from tablereader.config import DetectorConfig
from tablereader.models import TextFragment
from tablereader.rows import extract_raw_rows, group_into_rows, representative_y, row_y


def _frag(text: str, x: float, y: float) -> TextFragment:
    return TextFragment(text=text, x=x, y=y, width=8.0 * len(text), height=10.0)


def _texts(rows: list[list[TextFragment]]) -> list[list[str]]:
    return [[f.text for f in row] for row in rows]


def test_group_into_rows_sorts_rows_by_y_and_cells_by_x() -> None:
    fragments = [
        _frag("290", 150, 130.0),
        _frag("Calories", 150, 100.0),
        _frag("Cheese Pizza", 20, 131.5),
        _frag("Item", 20, 101.0),
    ]

    rows = group_into_rows(fragments)

    assert _texts(rows) == [["Item", "Calories"], ["Cheese Pizza", "290"]]
    for row in rows:
        xs = [f.x for f in row]
        assert all(a < b for a, b in zip(xs, xs[1:]))


def test_group_into_rows_running_mean_absorbs_jitter() -> None:
    fragments = [_frag("a", 10, 100.0), _frag("b", 50, 103.0), _frag("c", 90, 104.5)]

    mean_rows = group_into_rows(fragments, config=DetectorConfig(row_anchor="mean"))
    first_rows = group_into_rows(fragments, config=DetectorConfig(row_anchor="first"))

    assert _texts(mean_rows) == [["a", "b", "c"]]
    assert _texts(first_rows) == [["a", "b"], ["c"]]


def test_group_into_rows_rejects_unknown_row_anchor() -> None:
    fragments = [_frag("a", 10, 100.0), _frag("b", 50, 103.0), _frag("c", 90, 104.5)]

    with pytest.raises(ValueError, match="row anchor"):
        group_into_rows(fragments, config=DetectorConfig(row_anchor="firts"))
    with pytest.raises(ValueError, match="row anchor"):
        group_into_rows([], config=DetectorConfig(row_anchor="firts"))
    with pytest.raises(ValueError, match="row anchor"):
        representative_y(fragments, mode="median")


def test_group_into_rows_respects_configured_tolerance() -> None:
    fragments = [_frag("a", 10, 100.0), _frag("b", 50, 104.0)]

    assert len(group_into_rows(fragments)) == 2
    loose = replace(DetectorConfig(), y_tolerance=5.0)
    assert _texts(group_into_rows(fragments, config=loose)) == [["a", "b"]]


def test_group_into_rows_handles_empty_and_rejects_none() -> None:
    assert group_into_rows([]) == []
    with pytest.raises(ValueError):
        group_into_rows(None)  # type: ignore[arg-type]


def test_group_into_rows_is_idempotent_on_flattened_output() -> None:
    fragments = [
        _frag("Item", 20, 100.0),
        _frag("Calories", 150, 101.2),
        _frag("Fat", 250, 99.4),
        _frag("Cheese Pizza", 20, 115.0),
        _frag("290", 150, 116.1),
        _frag("12", 250, 114.3),
        _frag("Wings", 20, 130.0),
        _frag("400", 150, 131.0),
    ]

    first = group_into_rows(fragments)
    flattened = [f for row in first for f in row]
    second = group_into_rows(flattened)

    assert second == first


def test_row_y_and_representative_y() -> None:
    row = [_frag("a", 10, 100.0), _frag("b", 50, 102.0)]

    assert row_y(row) == 100.0
    assert representative_y(row) == 101.0
    assert representative_y(row, mode="first") == 100.0
    assert representative_y([]) == 0.0


def test_extract_raw_rows_flattens_without_anchor_inference() -> None:
    fragments = [
        _frag(" Item ", 20, 100.0),
        _frag("Calories", 150, 100.0),
        _frag("Fat", 250, 100.0),
        _frag("Wings", 20, 120.0),
        _frag("400", 160, 120.0),
    ]

    raw_rows = extract_raw_rows(fragments)

    assert [r.cells for r in raw_rows] == [("Item", "Calories", "Fat"), ("Wings", "400")]
    assert [r.y for r in raw_rows] == [100.0, 120.0]
