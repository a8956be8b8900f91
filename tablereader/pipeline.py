from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from urllib.parse import urlparse

import httpx

from tablereader.calibration import build_table_from_calibration
from tablereader.config import DetectorConfig, Settings, get_detector_config, get_settings
from tablereader.lookup import (
    find_cell_value,
    find_headers,
    find_row_items_below_headers,
    get_all_row_values,
)
from tablereader.models import CalibrationSettings, ParseResult, RawRow, Table, TextFragment
from tablereader.pdf_text import extract_text_fragments
from tablereader.rows import extract_raw_rows
from tablereader.table_detector import detect_tables

logger = logging.getLogger(__name__)


class ParseErrorType(str, Enum):
    invalid_url = "INVALID_URL"
    fetch_failed = "FETCH_FAILED"
    not_a_pdf = "NOT_A_PDF"
    parse_failed = "PARSE_FAILED"
    no_tables = "NO_TABLES"
    too_large = "TOO_LARGE"


class ParseError(Exception):
    def __init__(self, error_type: ParseErrorType, message: str) -> None:
        super().__init__(message)
        self.type = error_type
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"type": self.type.value, "message": self.message}


def _too_large(settings: Settings) -> ParseError:
    limit_mb = settings.max_upload_bytes // (1024 * 1024)
    return ParseError(
        ParseErrorType.too_large,
        f"This PDF is too large. Maximum size is {limit_mb}MB.",
    )


def validate_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise ParseError(ParseErrorType.invalid_url, "Please provide a PDF URL")
    value = url.strip()
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"}:
        raise ParseError(ParseErrorType.invalid_url, "URL must use http or https protocol")
    if not parsed.netloc:
        raise ParseError(ParseErrorType.invalid_url, "Please enter a valid PDF URL")
    return value


def fetch_pdf(
    url: str,
    *,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
) -> bytes:
    """Download a PDF, enforcing content type and size limits."""

    settings = settings or get_settings()
    url = validate_url(url)
    headers = {"User-Agent": settings.user_agent}

    owns_client = client is None
    if client is None:
        client = httpx.Client(
            timeout=httpx.Timeout(settings.fetch_timeout_seconds),
            follow_redirects=True,
        )
    try:
        try:
            response = client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Fetching %s failed: %s", url, exc)
            raise ParseError(
                ParseErrorType.fetch_failed,
                "Couldn't access this PDF. Make sure the URL is public.",
            ) from exc
    finally:
        if owns_client:
            client.close()

    if not response.is_success:
        raise ParseError(
            ParseErrorType.fetch_failed,
            f"Couldn't access this PDF. Server returned {response.status_code}.",
        )

    content_type = (response.headers.get("content-type") or "").lower()
    if content_type and "pdf" not in content_type and "octet-stream" not in content_type:
        raise ParseError(ParseErrorType.not_a_pdf, "This doesn't appear to be a PDF file.")

    content_length = response.headers.get("content-length")
    if content_length and content_length.strip().isdigit():
        if int(content_length) > settings.max_upload_bytes:
            raise _too_large(settings)

    content = response.content
    if len(content) > settings.max_upload_bytes:
        raise _too_large(settings)
    return content


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def load_fragments(
    pdf_bytes: bytes,
    *,
    source: str,
    settings: Settings | None = None,
) -> list[TextFragment]:
    settings = settings or get_settings()
    if len(pdf_bytes) > settings.max_upload_bytes:
        raise _too_large(settings)
    try:
        return extract_text_fragments(pdf_bytes, settings=settings)
    except (ValueError, RuntimeError) as exc:
        logger.warning("Extracting text from %s failed: %s", source, exc)
        raise ParseError(
            ParseErrorType.parse_failed,
            "Couldn't read tables from this PDF. Try a different file.",
        ) from exc


def parse_pdf_bytes(
    pdf_bytes: bytes,
    *,
    source: str,
    config: DetectorConfig | None = None,
    settings: Settings | None = None,
    require_tables: bool = True,
) -> ParseResult:
    """
    Extract fragments, reconstruct tables and export raw rows for calibration.

    With `require_tables=False` an empty table list is returned as-is so the caller
    can fall back to manual calibration.
    """

    settings = settings or get_settings()
    config = config or get_detector_config()

    fragments = load_fragments(pdf_bytes, source=source, settings=settings)
    tables = detect_tables(fragments, config=config)
    raw_rows = extract_raw_rows(fragments, config=config)
    logger.info(
        "Parsed %s: %d fragments, %d raw rows, %d tables",
        source,
        len(fragments),
        len(raw_rows),
        len(tables),
    )

    if require_tables and not tables:
        raise ParseError(ParseErrorType.no_tables, "No tables found in this PDF.")

    return ParseResult(
        source=source,
        tables=tuple(tables),
        raw_rows=tuple(raw_rows),
        parsed_at=_now_iso(),
    )


def parse_pdf_from_url(
    url: str,
    *,
    config: DetectorConfig | None = None,
    settings: Settings | None = None,
    client: httpx.Client | None = None,
    require_tables: bool = True,
) -> ParseResult:
    settings = settings or get_settings()
    pdf_bytes = fetch_pdf(url, settings=settings, client=client)
    return parse_pdf_bytes(
        pdf_bytes,
        source=url,
        config=config,
        settings=settings,
        require_tables=require_tables,
    )


def calibrate(
    raw_rows: Sequence[RawRow],
    header_row_index: int,
    label_column_index: int,
) -> Table:
    return build_table_from_calibration(
        raw_rows,
        CalibrationSettings(
            header_row_index=header_row_index,
            label_column_index=label_column_index,
        ),
    )


def lookup_values(
    fragments: Sequence[TextFragment],
    row_text: str,
    column_text: str | None = None,
    *,
    config: DetectorConfig | None = None,
) -> dict[str, Any]:
    """
    Answer a point query through the keyword path.

    Row and column are matched case-insensitively as substrings of the discovered
    row labels and headers; the first match wins.
    """

    config = config or get_detector_config()
    headers = find_headers(fragments, config=config)
    rows = find_row_items_below_headers(fragments, headers, config=config)

    needle = row_text.strip().lower()
    row = next((r for r in rows if needle and needle in r.text.lower()), None)
    if row is None:
        return {"row": None, "section": None, "values": {}}

    if column_text is None:
        values = get_all_row_values(fragments, headers, row.fragment, config=config)
        return {"row": row.text, "section": row.section, "values": values}

    column_needle = column_text.strip().lower()
    header = next((h for h in headers if column_needle and column_needle in h.text.lower()), None)
    if header is None:
        return {"row": row.text, "section": row.section, "values": {}}
    value = find_cell_value(fragments, header.fragment, row.fragment, config=config)
    values = {header.text: value} if value is not None else {}
    return {"row": row.text, "section": row.section, "values": values}
