from __future__ import annotations

import httpx
import pytest

from tablereader import pipeline
from tablereader.config import DetectorConfig, Settings
from tablereader.models import RawRow, TextFragment
from tablereader.pipeline import (
    ParseError,
    ParseErrorType,
    calibrate,
    fetch_pdf,
    lookup_values,
    parse_pdf_bytes,
    parse_pdf_from_url,
    validate_url,
)


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "max_upload_bytes": 1024,
        "max_pages": 50,
        "fetch_timeout_seconds": 5.0,
        "parse_budget_seconds": 5.0,
        "user_agent": "tablereader-tests",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


def _scenario_fragments() -> list[TextFragment]:
    return [
        TextFragment(text="Calories", x=150, y=100, width=40, height=10),
        TextFragment(text="Cheese Pizza", x=20, y=130, width=60, height=10),
        TextFragment(text="290", x=150, y=130, width=15, height=10),
    ]


def _client(handler: object) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]


@pytest.mark.parametrize("url", ["", "   ", "ftp://example.com/a.pdf", "not a url", "https://"])
def test_validate_url_rejects_invalid_urls(url: str) -> None:
    with pytest.raises(ParseError) as excinfo:
        validate_url(url)
    assert excinfo.value.type == ParseErrorType.invalid_url


def test_validate_url_accepts_http_and_https() -> None:
    assert validate_url(" https://example.com/menu.pdf ") == "https://example.com/menu.pdf"
    assert validate_url("http://example.com/menu.pdf") == "http://example.com/menu.pdf"


def test_fetch_pdf_returns_body_and_sends_user_agent() -> None:
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["ua"] = request.headers["user-agent"]
        return httpx.Response(
            200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.4"
        )

    with _client(handler) as client:
        content = fetch_pdf("https://example.com/menu.pdf", settings=_settings(), client=client)

    assert content == b"%PDF-1.4"
    assert seen["ua"] == "tablereader-tests"


@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (httpx.Response(404, content=b"missing"), ParseErrorType.fetch_failed),
        (
            httpx.Response(200, headers={"content-type": "text/html"}, content=b"<html>"),
            ParseErrorType.not_a_pdf,
        ),
        (
            httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"0" * 2048),
            ParseErrorType.too_large,
        ),
    ],
)
def test_fetch_pdf_maps_failures(response: httpx.Response, expected: ParseErrorType) -> None:
    with _client(lambda _request: response) as client:
        with pytest.raises(ParseError) as excinfo:
            fetch_pdf("https://example.com/menu.pdf", settings=_settings(), client=client)
    assert excinfo.value.type == expected


def test_fetch_pdf_accepts_octet_stream() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers={"content-type": "application/octet-stream"},
            content=b"%PDF-1.7",
        )

    with _client(handler) as client:
        content = fetch_pdf("https://example.com/x", settings=_settings(), client=client)
    assert content == b"%PDF-1.7"


def test_fetch_pdf_maps_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(ParseError) as excinfo:
            fetch_pdf("https://example.com/menu.pdf", settings=_settings(), client=client)
    assert excinfo.value.type == ParseErrorType.fetch_failed
    assert "public" in excinfo.value.message


def test_parse_pdf_bytes_detects_tables_and_exports_raw_rows(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        pipeline, "extract_text_fragments", lambda _pdf_bytes, settings: _scenario_fragments()
    )

    result = parse_pdf_bytes(
        b"%PDF", source="menu.pdf", config=DetectorConfig(), settings=_settings()
    )

    assert result.source == "menu.pdf"
    assert len(result.tables) == 1
    assert result.tables[0].rows[0].values == {"Calories": "290"}
    assert [row.cells for row in result.raw_rows] == [("Calories",), ("Cheese Pizza", "290")]
    assert result.parsed_at.endswith("+00:00")
    payload = result.to_dict()
    assert payload["tables"][0]["headers"] == ["Calories"]
    assert payload["raw_rows"][1] == {"cells": ["Cheese Pizza", "290"], "y": 130.0}


def test_parse_pdf_bytes_no_tables(monkeypatch: pytest.MonkeyPatch) -> None:
    fragments = [TextFragment(text="Just a paragraph", x=20, y=100)]
    monkeypatch.setattr(pipeline, "extract_text_fragments", lambda _pdf_bytes, settings: fragments)

    with pytest.raises(ParseError) as excinfo:
        parse_pdf_bytes(b"%PDF", source="a.pdf", config=DetectorConfig(), settings=_settings())
    assert excinfo.value.type == ParseErrorType.no_tables

    result = parse_pdf_bytes(
        b"%PDF",
        source="a.pdf",
        config=DetectorConfig(),
        settings=_settings(),
        require_tables=False,
    )
    assert result.tables == ()
    assert result.raw_rows == (RawRow(cells=("Just a paragraph",), y=100.0),)


def test_parse_pdf_bytes_maps_extraction_failures(monkeypatch: pytest.MonkeyPatch) -> None:
    def _boom(_pdf_bytes: bytes, settings: Settings) -> list[TextFragment]:
        raise ValueError("Invalid PDF data")

    monkeypatch.setattr(pipeline, "extract_text_fragments", _boom)

    with pytest.raises(ParseError) as excinfo:
        parse_pdf_bytes(b"%PDF", source="a.pdf", config=DetectorConfig(), settings=_settings())
    assert excinfo.value.type == ParseErrorType.parse_failed
    assert excinfo.value.to_dict()["type"] == "PARSE_FAILED"


def test_parse_pdf_bytes_rejects_oversize_input() -> None:
    with pytest.raises(ParseError) as excinfo:
        parse_pdf_bytes(b"0" * 2048, source="big.pdf", settings=_settings())
    assert excinfo.value.type == ParseErrorType.too_large


def test_parse_pdf_bytes_reads_a_real_pdf() -> None:
    import fitz

    doc = fitz.open()
    page = doc.new_page(width=600, height=800)
    page.insert_text((20, 100), "Item")
    page.insert_text((20, 130), "Cheese Pizza")
    page.insert_text((20, 160), "Wings")
    pdf_bytes = doc.tobytes()

    result = parse_pdf_bytes(
        pdf_bytes,
        source="menu.pdf",
        config=DetectorConfig(),
        settings=_settings(max_upload_bytes=10 * 1024 * 1024),
        require_tables=False,
    )

    assert [row.cells for row in result.raw_rows] == [("Item",), ("Cheese Pizza",), ("Wings",)]


def test_parse_pdf_from_url_fetches_then_parses(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        pipeline, "extract_text_fragments", lambda _pdf_bytes, settings: _scenario_fragments()
    )

    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"content-type": "application/pdf"}, content=b"%PDF")

    with _client(handler) as client:
        result = parse_pdf_from_url(
            "https://example.com/menu.pdf",
            config=DetectorConfig(),
            settings=_settings(),
            client=client,
        )

    assert result.source == "https://example.com/menu.pdf"
    assert result.tables[0].headers == ("Calories",)


def test_calibrate_builds_table_from_indices() -> None:
    raw_rows = [
        RawRow(cells=("Item", "Calories"), y=100.0),
        RawRow(cells=("Cheese Pizza", "290"), y=115.0),
    ]

    table = calibrate(raw_rows, 0, 0)

    assert table.headers == ("Calories",)
    assert table.rows[0].values == {"Calories": "290"}


def test_lookup_values_answers_point_queries() -> None:
    fragments = [
        TextFragment(text="Calories", x=150, y=100, width=40, height=10),
        TextFragment(text="Pepperoni Pizza", x=20, y=130, width=70, height=10),
        TextFragment(text="290", x=150, y=130, width=15, height=10),
    ]
    cfg = DetectorConfig()

    assert lookup_values(fragments, "pepperoni pizza", "calories", config=cfg) == {
        "row": "Pepperoni Pizza",
        "section": None,
        "values": {"Calories": "290"},
    }
    assert lookup_values(fragments, "Pepperoni", config=cfg)["values"] == {"Calories": "290"}
    assert lookup_values(fragments, "Wings", config=cfg)["row"] is None
    assert lookup_values(fragments, "Pepperoni", "Sodium", config=cfg)["values"] == {}


def test_lookup_values_treats_keyword_prefixed_labels_as_sections() -> None:
    fragments = _scenario_fragments() + [
        TextFragment(text="Large Slice", x=20, y=160, width=50, height=10),
        TextFragment(text="340", x=150, y=160, width=15, height=10),
    ]
    cfg = DetectorConfig()

    assert lookup_values(_scenario_fragments(), "cheese pizza", config=cfg)["row"] is None
    assert lookup_values(fragments, "cheese pizza", config=cfg)["row"] is None
    assert lookup_values(fragments, "large slice", "calories", config=cfg) == {
        "row": "Large Slice",
        "section": "Cheese Pizza",
        "values": {"Calories": "340"},
    }
