from __future__ import annotations

from collections.abc import Iterable, Sequence

from tablereader.config import DetectorConfig
from tablereader.models import HeaderCandidate, RowCandidate, Table, TableRow, TextFragment


def _matches_header_keyword(text_lower: str, keywords: Iterable[str]) -> bool:
    return any(kw.lower() in text_lower for kw in keywords)


def is_section_marker(text: str, *, config: DetectorConfig | None = None) -> bool:
    """Short labels such as "Toppings" or "KIDS MENU" that head a group of rows."""

    cfg = config or DetectorConfig()
    if len(text) >= cfg.section_max_length:
        return False
    text_lower = text.lower()
    for keyword in cfg.section_keywords:
        kw = keyword.lower()
        if (
            text_lower == kw
            or text_lower.startswith(kw + " ")
            or text_lower.endswith(" " + kw)
            or text == kw.upper()
        ):
            return True
    return False


def find_headers(
    fragments: Sequence[TextFragment],
    *,
    config: DetectorConfig | None = None,
) -> list[HeaderCandidate]:
    if fragments is None:
        raise ValueError("fragments must not be None")
    cfg = config or DetectorConfig()

    unique: dict[str, TextFragment] = {}
    for fragment in fragments:
        text = fragment.text.strip()
        if len(text) < 2 or text in unique:
            continue
        if _matches_header_keyword(text.lower(), cfg.header_keywords):
            unique[text] = fragment

    candidates = [HeaderCandidate(text=text, fragment=f) for text, f in unique.items()]
    candidates.sort(key=lambda h: h.fragment.x)
    return candidates


def find_row_items(
    fragments: Sequence[TextFragment],
    header_y: float,
    *,
    config: DetectorConfig | None = None,
) -> list[RowCandidate]:
    """
    Collect row labels from the left margin below the header line.

    Section markers are not returned; they set `section` on the rows that follow.
    """

    if fragments is None:
        raise ValueError("fragments must not be None")
    cfg = config or DetectorConfig()

    below = [f for f in fragments if f.y > header_y + cfg.header_row_gap]
    if not below:
        return []

    min_x = min(f.x for f in below)
    left = [
        f
        for f in below
        if f.x < min_x + cfg.row_label_band_width and len(f.text.strip()) > 2
    ]
    left.sort(key=lambda f: f.y)

    seen: set[str] = set()
    items: list[RowCandidate] = []
    section: str | None = None
    for fragment in left:
        text = fragment.text.strip()
        if text in seen:
            continue
        seen.add(text)

        if is_section_marker(text, config=cfg):
            section = text
            continue
        items.append(RowCandidate(text=text, fragment=fragment, section=section))
    return items


def find_row_items_below_headers(
    fragments: Sequence[TextFragment],
    headers: Sequence[HeaderCandidate],
    *,
    config: DetectorConfig | None = None,
) -> list[RowCandidate]:
    if not headers:
        return []
    header_y = min(h.fragment.y for h in headers)
    return find_row_items(fragments, header_y, config=config)


def find_cell_value(
    fragments: Sequence[TextFragment],
    header_fragment: TextFragment,
    row_fragment: TextFragment,
    *,
    x_tolerance: float | None = None,
    y_tolerance: float | None = None,
    config: DetectorConfig | None = None,
) -> str | None:
    """
    Value at the intersection of a header column and a row, or None.

    The whole fragment list is searched, so on dense pages the nearest hit can
    belong to a neighbouring row.
    """

    if fragments is None:
        raise ValueError("fragments must not be None")
    cfg = config or DetectorConfig()
    x_tol = cfg.lookup_x_tolerance if x_tolerance is None else x_tolerance
    y_tol = cfg.lookup_y_tolerance if y_tolerance is None else y_tolerance

    best: TextFragment | None = None
    best_dist = 0.0
    for fragment in fragments:
        dx = abs(fragment.x - header_fragment.x)
        dy = abs(fragment.y - row_fragment.y)
        if dx >= x_tol or dy >= y_tol or not fragment.text.strip():
            continue
        dist = dx + dy
        if best is None or dist < best_dist:
            best = fragment
            best_dist = dist

    if best is None:
        return None
    return best.text.strip()


def get_all_row_values(
    fragments: Sequence[TextFragment],
    headers: Sequence[HeaderCandidate],
    row_fragment: TextFragment,
    *,
    config: DetectorConfig | None = None,
) -> dict[str, str]:
    values: dict[str, str] = {}
    for header in headers:
        value = find_cell_value(fragments, header.fragment, row_fragment, config=config)
        if value:
            values[header.text] = value
    return values


def build_lookup_table(
    fragments: Sequence[TextFragment],
    *,
    config: DetectorConfig | None = None,
) -> Table | None:
    """Assemble a table from keyword headers and margin labels, without a grid."""

    headers = find_headers(fragments, config=config)
    if not headers:
        return None
    row_items = find_row_items_below_headers(fragments, headers, config=config)

    rows: list[TableRow] = []
    for i, item in enumerate(row_items):
        values = get_all_row_values(fragments, headers, item.fragment, config=config)
        rows.append(TableRow(id=f"lookup-row-{i}", label=item.text, values=values))
    if not rows:
        return None

    return Table(id="lookup", headers=tuple(h.text for h in headers), rows=tuple(rows))
