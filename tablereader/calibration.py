from __future__ import annotations

from collections.abc import Sequence

from tablereader.config import DetectorConfig
from tablereader.models import CalibrationSettings, RawRow, Table, TableRow


def build_table_from_calibration(
    raw_rows: Sequence[RawRow],
    settings: CalibrationSettings,
    *,
    table_id: str = "calibrated",
) -> Table:
    """
    Build a table from a user-chosen header row and label column.

    No geometry is inferred here. Every row after the header becomes a data row and
    missing cells become empty strings.
    """

    if raw_rows is None:
        raise ValueError("raw_rows must not be None")
    header_index = settings.header_row_index
    label_index = settings.label_column_index
    if not 0 <= header_index < len(raw_rows):
        raise ValueError(
            f"header_row_index out of range: {header_index} (rows={len(raw_rows)})"
        )
    header_cells = raw_rows[header_index].cells
    if not 0 <= label_index < len(header_cells):
        raise ValueError(
            f"label_column_index out of range: {label_index} (columns={len(header_cells)})"
        )

    columns = [(j, cell) for j, cell in enumerate(header_cells) if j != label_index]

    rows: list[TableRow] = []
    for i in range(header_index + 1, len(raw_rows)):
        cells = raw_rows[i].cells
        label = cells[label_index] if label_index < len(cells) else ""
        values = {header: (cells[j] if j < len(cells) else "") for j, header in columns}
        rows.append(TableRow(id=f"{table_id}-row-{i}", label=label, values=values))

    return Table(
        id=table_id,
        headers=tuple(header for _, header in columns),
        rows=tuple(rows),
    )


def find_likely_header_rows(
    raw_rows: Sequence[RawRow],
    *,
    config: DetectorConfig | None = None,
    min_matches: int = 2,
) -> list[int]:
    """Indices of rows mentioning at least `min_matches` distinct header keywords."""

    cfg = config or DetectorConfig()
    indices: list[int] = []
    for index, row in enumerate(raw_rows):
        text = " ".join(row.cells).lower()
        matches = sum(1 for kw in cfg.header_keywords if kw.lower() in text)
        if matches >= min_matches:
            indices.append(index)
    return indices
