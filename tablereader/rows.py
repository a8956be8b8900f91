from __future__ import annotations

from collections.abc import Sequence

from tablereader.config import SUPPORTED_ROW_ANCHORS, DetectorConfig
from tablereader.models import RawRow, TextFragment


def _row_anchor(name: str) -> str:
    key = (name or "").strip().lower()
    if key not in SUPPORTED_ROW_ANCHORS:
        raise ValueError(
            f"row anchor must be one of {', '.join(SUPPORTED_ROW_ANCHORS)}, got: {name!r}"
        )
    return key


def group_into_rows(
    fragments: Sequence[TextFragment],
    *,
    config: DetectorConfig | None = None,
) -> list[list[TextFragment]]:
    """
    Cluster fragments that share a vertical band into rows.

    Rows come back top to bottom, each sorted left to right. The band is measured
    against the row's representative Y: the running mean of its members by default,
    or the first member's Y when `config.row_anchor == "first"`.
    """

    if fragments is None:
        raise ValueError("fragments must not be None")
    cfg = config or DetectorConfig()
    use_mean = _row_anchor(cfg.row_anchor) == "mean"
    if not fragments:
        return []

    ordered = sorted(fragments, key=lambda f: f.y)

    rows: list[list[TextFragment]] = []
    current: list[TextFragment] = [ordered[0]]
    y_sum = ordered[0].y
    anchor_y = ordered[0].y

    for fragment in ordered[1:]:
        if abs(fragment.y - anchor_y) <= cfg.y_tolerance:
            current.append(fragment)
            if use_mean:
                y_sum += fragment.y
                anchor_y = y_sum / len(current)
            continue

        rows.append(sorted(current, key=lambda f: f.x))
        current = [fragment]
        y_sum = fragment.y
        anchor_y = fragment.y

    rows.append(sorted(current, key=lambda f: f.x))
    return rows


def row_y(row: Sequence[TextFragment]) -> float:
    return min(f.y for f in row)


def representative_y(row: Sequence[TextFragment], *, mode: str = "mean") -> float:
    anchor = _row_anchor(mode)
    if not row:
        return 0.0
    if anchor == "first":
        return min(f.y for f in row)
    return round(sum(f.y for f in row) / len(row), 2)


def extract_raw_rows(
    fragments: Sequence[TextFragment],
    *,
    config: DetectorConfig | None = None,
) -> list[RawRow]:
    """Flatten grouped rows to plain cell strings for manual calibration."""

    cfg = config or DetectorConfig()
    raw_rows: list[RawRow] = []
    for row in group_into_rows(fragments, config=cfg):
        cells = tuple(f.text.strip() for f in row)
        raw_rows.append(RawRow(cells=cells, y=representative_y(row, mode=cfg.row_anchor)))
    return raw_rows
