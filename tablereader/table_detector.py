from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Final, Protocol

from tablereader.columns import (
    detect_column_anchors,
    find_typical_column_count,
    map_row_to_columns,
)
from tablereader.config import SUPPORTED_HEADER_STRATEGIES, DetectorConfig
from tablereader.models import Table, TableRow, TextFragment
from tablereader.rows import group_into_rows, row_y

logger = logging.getLogger(__name__)

_NUMERIC_NOISE_RE: Final[re.Pattern[str]] = re.compile(r"[\s,%$¢£¤¥€₩₪₫₭₱₴₹₺₽฿]")
_NUMBER_RE: Final[re.Pattern[str]] = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")

Row = Sequence[TextFragment]


def is_numeric_cell(text: str) -> bool:
    cleaned = _NUMERIC_NOISE_RE.sub("", text or "")
    if not cleaned:
        return False
    return _NUMBER_RE.fullmatch(cleaned) is not None


def split_into_tables(
    rows: Sequence[Row],
    *,
    config: DetectorConfig | None = None,
) -> list[list[Row]]:
    """Split rows wherever the vertical gap exceeds the table gap threshold."""

    cfg = config or DetectorConfig()
    if not rows:
        return []

    segments: list[list[Row]] = []
    current: list[Row] = [rows[0]]
    for prev, row in zip(rows, rows[1:]):
        gap = row_y(row) - row_y(prev)
        if gap > cfg.table_gap_threshold:
            if len(current) >= cfg.min_table_rows:
                segments.append(current)
            current = [row]
        else:
            current.append(row)

    if len(current) >= cfg.min_table_rows:
        segments.append(current)
    return segments


class HeaderClassifier(Protocol):
    def find_header_index(
        self, mapped_rows: Sequence[Sequence[str]], *, scan_rows: int
    ) -> int: ...


class RatioHeaderClassifier:
    """First row whose filled non-label cells are mostly non-numeric."""

    threshold: float = 0.5

    def find_header_index(self, mapped_rows: Sequence[Sequence[str]], *, scan_rows: int) -> int:
        for i, cells in enumerate(mapped_rows[:scan_rows]):
            filled = [c.strip() for c in cells[1:] if c.strip()]
            if not filled:
                continue
            text_like = sum(1 for c in filled if not is_numeric_cell(c))
            if text_like / len(filled) > self.threshold:
                return i
        return 0


class FirstTextHeaderClassifier:
    """First row with any non-numeric non-label cell."""

    def find_header_index(self, mapped_rows: Sequence[Sequence[str]], *, scan_rows: int) -> int:
        for i, cells in enumerate(mapped_rows[:scan_rows]):
            if any(c.strip() and not is_numeric_cell(c) for c in cells[1:]):
                return i
        return 0


_CLASSIFIERS: dict[str, type[HeaderClassifier]] = {
    "ratio": RatioHeaderClassifier,
    "first-text": FirstTextHeaderClassifier,
}


def get_header_classifier(name: str) -> HeaderClassifier:
    key = (name or "").strip().lower()
    if key not in _CLASSIFIERS:
        raise ValueError(
            f"header strategy must be one of {', '.join(SUPPORTED_HEADER_STRATEGIES)}, "
            f"got: {name!r}"
        )
    return _CLASSIFIERS[key]()


def is_data_row(cells: Sequence[str]) -> bool:
    """
    Reject rows that cannot carry data: short labels, and text-only rows such as
    stray sub-section headings.
    """

    if not cells:
        return False
    label = cells[0].strip()
    if len(label) < 2:
        return False
    if is_numeric_cell(label):
        return True

    filled = [c.strip() for c in cells[1:] if c.strip()]
    numeric = sum(1 for c in filled if is_numeric_cell(c))
    return bool(filled) and numeric * 3 >= len(filled)


def rows_to_table(
    rows: Sequence[Row],
    table_index: int,
    *,
    config: DetectorConfig | None = None,
) -> Table | None:
    cfg = config or DetectorConfig()
    if len(rows) < cfg.min_table_rows:
        return None

    typical = find_typical_column_count(rows, min_columns=cfg.min_columns)
    logger.debug("Table %d: %d rows, typical cols: %d", table_index, len(rows), typical)
    if typical < cfg.min_columns:
        return None

    anchors = detect_column_anchors(rows, config=cfg)
    logger.debug("Table %d: column anchors %s", table_index, anchors)
    if len(anchors) < cfg.min_columns:
        return None

    mapped = [map_row_to_columns(row, anchors) for row in rows]
    classifier = get_header_classifier(cfg.header_strategy)
    header_index = classifier.find_header_index(mapped, scan_rows=cfg.header_scan_rows)
    header_cells = mapped[header_index]

    # Column index -> header text; empty header cells (placeholder `Column N`) are dropped.
    columns: list[tuple[int, str]] = []
    for j in range(1, len(header_cells)):
        placeholder = f"Column {j}"
        header = header_cells[j].strip() or placeholder
        if header == placeholder:
            continue
        columns.append((j, header))

    table_rows: list[TableRow] = []
    for i in range(header_index + 1, len(mapped)):
        cells = mapped[i]
        if not is_data_row(cells):
            continue
        values: dict[str, str] = {}
        for j, header in columns:
            value = cells[j].strip() if j < len(cells) else ""
            if value and header not in values:
                values[header] = value
        table_rows.append(
            TableRow(id=f"table-{table_index}-row-{i}", label=cells[0].strip(), values=values)
        )

    if not table_rows:
        return None

    headers = tuple(dict.fromkeys(header for _, header in columns))
    return Table(id=f"table-{table_index}", headers=headers, rows=tuple(table_rows))


def detect_tables(
    fragments: Sequence[TextFragment],
    *,
    config: DetectorConfig | None = None,
) -> list[Table]:
    """
    Reconstruct every table on a page from positioned text fragments.

    An empty list is a valid outcome; callers decide whether that means "no tables".
    """

    if fragments is None:
        raise ValueError("fragments must not be None")
    cfg = config or DetectorConfig()
    logger.debug("Detecting tables from %d text fragments", len(fragments))

    rows = group_into_rows(fragments, config=cfg)
    logger.debug("Grouped into %d rows", len(rows))
    if len(rows) < cfg.min_table_rows:
        return []

    segments = split_into_tables(rows, config=cfg)
    logger.debug("Split into %d table segments", len(segments))

    tables: list[Table] = []
    for index, segment in enumerate(segments):
        table = rows_to_table(segment, index, config=cfg)
        if table is not None:
            tables.append(table)
    return tables
