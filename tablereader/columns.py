from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Sequence
from typing import Protocol

from tablereader.config import SUPPORTED_COLUMN_STRATEGIES, DetectorConfig
from tablereader.models import TextFragment

Row = Sequence[TextFragment]


class ColumnDetector(Protocol):
    def detect(
        self,
        rows: Sequence[Row],
        typical_column_count: int,
        config: DetectorConfig,
    ) -> list[float]: ...


def find_typical_column_count(rows: Sequence[Row], *, min_columns: int) -> int:
    """Most frequent row length among rows with at least `min_columns` fragments."""

    counts = Counter(len(row) for row in rows if len(row) >= min_columns)
    best_length = 0
    best_count = 0
    # Counter keeps first-seen order, so ties resolve to the earliest length.
    for length, count in counts.items():
        if count > best_count:
            best_length = length
            best_count = count
    return best_length


class MedianColumnDetector:
    """Per-position median X over the rows that have the typical length."""

    def detect(
        self,
        rows: Sequence[Row],
        typical_column_count: int,
        config: DetectorConfig,
    ) -> list[float]:
        _ = config
        if typical_column_count <= 0:
            return []
        consistent = [row for row in rows if len(row) == typical_column_count]
        if not consistent:
            return []

        anchors: list[float] = []
        for i in range(typical_column_count):
            xs = [row[i].x for row in consistent]
            anchors.append(float(statistics.median_high(xs)))
        return anchors


class GapClusterColumnDetector:
    """Greedy 1-D clustering of every fragment X, ignoring row lengths."""

    def detect(
        self,
        rows: Sequence[Row],
        typical_column_count: int,
        config: DetectorConfig,
    ) -> list[float]:
        _ = typical_column_count
        xs = sorted(f.x for row in rows for f in row)
        if not xs:
            return []

        anchors: list[float] = []
        cluster: list[float] = [xs[0]]
        for x in xs[1:]:
            if x - cluster[0] <= config.x_tolerance:
                cluster.append(x)
                continue
            anchors.append(round(statistics.fmean(cluster), 2))
            cluster = [x]
        anchors.append(round(statistics.fmean(cluster), 2))
        return anchors


class AutoColumnDetector:
    """Median of consistent rows, falling back to gap clustering."""

    def __init__(self) -> None:
        self._primary = MedianColumnDetector()
        self._fallback = GapClusterColumnDetector()

    def detect(
        self,
        rows: Sequence[Row],
        typical_column_count: int,
        config: DetectorConfig,
    ) -> list[float]:
        anchors = self._primary.detect(rows, typical_column_count, config)
        if anchors:
            return anchors
        return self._fallback.detect(rows, typical_column_count, config)


_DETECTORS: dict[str, type[ColumnDetector]] = {
    "auto": AutoColumnDetector,
    "median": MedianColumnDetector,
    "cluster": GapClusterColumnDetector,
}


def get_column_detector(name: str) -> ColumnDetector:
    key = (name or "").strip().lower()
    if key not in _DETECTORS:
        raise ValueError(
            f"column strategy must be one of {', '.join(SUPPORTED_COLUMN_STRATEGIES)}, "
            f"got: {name!r}"
        )
    return _DETECTORS[key]()


def detect_column_anchors(
    rows: Sequence[Row],
    *,
    config: DetectorConfig | None = None,
) -> list[float]:
    """
    Infer column anchor X positions for a set of rows.

    Returns an empty list when no row reaches `config.min_columns`. The result is
    strictly ascending.
    """

    cfg = config or DetectorConfig()
    typical = find_typical_column_count(rows, min_columns=cfg.min_columns)
    if typical == 0:
        return []
    anchors = get_column_detector(cfg.column_strategy).detect(rows, typical, cfg)
    return _strictly_ascending(anchors)


def _strictly_ascending(values: list[float]) -> list[float]:
    out: list[float] = []
    for value in values:
        if out and value <= out[-1]:
            continue
        out.append(value)
    return out


def map_row_to_columns(row: Row, anchors: Sequence[float]) -> list[str]:
    """
    Assign each fragment to its nearest anchor and join multi-fragment cells.

    There is no distance cap: a far-away fragment still lands in the closest column.
    """

    if not anchors:
        return []

    cells: list[list[str]] = [[] for _ in anchors]
    for fragment in sorted(row, key=lambda f: f.x):
        best = 0
        best_dist = abs(fragment.x - anchors[0])
        for i in range(1, len(anchors)):
            dist = abs(fragment.x - anchors[i])
            if dist < best_dist:
                best = i
                best_dist = dist
        cells[best].append(fragment.text)
    return [" ".join(parts) for parts in cells]
