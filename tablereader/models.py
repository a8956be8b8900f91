from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class TextFragment:
    """One positioned run of text (top-left origin, coordinates rounded to 2 decimals)."""

    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }


@dataclass(frozen=True)
class RawRow:
    cells: tuple[str, ...]
    y: float

    def to_dict(self) -> dict[str, Any]:
        return {"cells": list(self.cells), "y": self.y}


@dataclass(frozen=True)
class TableRow:
    id: str
    label: str
    values: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label, "values": dict(self.values)}


@dataclass(frozen=True)
class Table:
    id: str
    headers: tuple[str, ...]
    rows: tuple[TableRow, ...]
    name: str | None = None

    def find_row(self, label: str) -> TableRow | None:
        for row in self.rows:
            if row.label == label:
                return row
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "headers": list(self.headers),
            "rows": [row.to_dict() for row in self.rows],
        }


@dataclass(frozen=True)
class HeaderCandidate:
    text: str
    fragment: TextFragment


@dataclass(frozen=True)
class RowCandidate:
    text: str
    fragment: TextFragment
    section: str | None = None


@dataclass(frozen=True)
class CalibrationSettings:
    header_row_index: int
    label_column_index: int


@dataclass(frozen=True)
class ParseResult:
    source: str
    tables: tuple[Table, ...]
    raw_rows: tuple[RawRow, ...]
    parsed_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "tables": [table.to_dict() for table in self.tables],
            "raw_rows": [row.to_dict() for row in self.raw_rows],
            "parsed_at": self.parsed_at,
        }
