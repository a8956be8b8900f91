from __future__ import annotations

import re
from typing import Any

from tablereader.config import Settings, get_settings
from tablereader.models import TextFragment

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _import_fitz() -> Any:
    try:
        import fitz  # PyMuPDF
    except Exception as exc:  # noqa: BLE001
        raise ImportError("PyMuPDF is required. Install `pymupdf`.") from exc
    return fitz


def normalize_fragment_text(text: str) -> str:
    normalized = text.replace("\u00a0", " ").replace("\u3000", " ")
    return _CONTROL_CHARS_RE.sub("", normalized)


def _round2(value: float) -> float:
    return round(float(value), 2)


def _span_fragment(span: dict[str, Any], *, y_offset: float) -> TextFragment | None:
    text = normalize_fragment_text(str(span.get("text") or ""))
    if not text.strip():
        return None

    bbox = span.get("bbox")
    if not isinstance(bbox, (list, tuple)) or len(bbox) != 4:
        return None
    try:
        x0, y0, x1, y1 = (float(bbox[0]), float(bbox[1]), float(bbox[2]), float(bbox[3]))
    except (TypeError, ValueError):
        return None

    # Baseline origin, like a text-matrix translation; fall back to the bbox corner.
    origin = span.get("origin")
    if isinstance(origin, (list, tuple)) and len(origin) == 2:
        try:
            x, y = float(origin[0]), float(origin[1])
        except (TypeError, ValueError):
            x, y = x0, y1
    else:
        x, y = x0, y1

    return TextFragment(
        text=text,
        x=_round2(x),
        y=_round2(y + y_offset),
        width=_round2(max(0.0, x1 - x0)),
        height=_round2(max(0.0, y1 - y0)),
    )


def _page_fragments(page: Any, *, y_offset: float) -> list[TextFragment]:
    data = page.get_text("dict") or {}
    blocks = data.get("blocks")
    if not isinstance(blocks, list):
        return []

    fragments: list[TextFragment] = []
    for block in blocks:
        if not isinstance(block, dict) or int(block.get("type", -1)) != 0:
            continue
        for line in block.get("lines") or []:
            if not isinstance(line, dict):
                continue
            for span in line.get("spans") or []:
                if not isinstance(span, dict):
                    continue
                fragment = _span_fragment(span, y_offset=y_offset)
                if fragment is not None:
                    fragments.append(fragment)
    return fragments


def extract_text_fragments(
    pdf_bytes: bytes,
    *,
    settings: Settings | None = None,
) -> list[TextFragment]:
    """
    Extract positioned text fragments from the PDF text layer using PyMuPDF.

    Coordinates use a top-left origin. Pages are stacked: each page's Y is offset by
    the total height of the pages before it, so separate pages never share a row.
    """

    if not pdf_bytes:
        raise ValueError("pdf_bytes is empty")

    settings = settings or get_settings()
    if len(pdf_bytes) > settings.max_upload_bytes:
        raise ValueError(
            f"PDF too large ({len(pdf_bytes)} bytes), max_bytes={settings.max_upload_bytes}"
        )

    fitz = _import_fitz()
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except Exception as exc:  # noqa: BLE001
        raise ValueError("Invalid PDF data") from exc

    try:
        page_count = int(doc.page_count)
    except Exception as exc:  # noqa: BLE001
        doc.close()
        raise RuntimeError("Failed to read PDF page count") from exc
    if page_count > settings.max_pages:
        doc.close()
        raise ValueError(f"PDF has {page_count} pages, max_pages={settings.max_pages}")

    fragments: list[TextFragment] = []
    y_offset = 0.0
    with doc:
        for i in range(page_count):
            page = doc.load_page(i)
            fragments.extend(_page_fragments(page, y_offset=y_offset))
            y_offset += float(page.rect.height)
    return fragments
