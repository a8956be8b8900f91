from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from tablereader.config import get_settings
from tablereader.models import RawRow
from tablereader.pipeline import (
    ParseError,
    ParseErrorType,
    calibrate,
    fetch_pdf,
    load_fragments,
    lookup_values,
    parse_pdf_bytes,
    parse_pdf_from_url,
)

app = FastAPI()

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_BY_ERROR: dict[ParseErrorType, int] = {
    ParseErrorType.invalid_url: 400,
    ParseErrorType.not_a_pdf: 400,
    ParseErrorType.fetch_failed: 502,
    ParseErrorType.too_large: 413,
}


class ParseRequest(BaseModel):
    url: str


class RawRowPayload(BaseModel):
    cells: list[str]
    y: float = 0.0


class CalibrateRequest(BaseModel):
    raw_rows: list[RawRowPayload]
    header_row_index: int
    label_column_index: int


class LookupRequest(BaseModel):
    url: str
    row: str
    column: str | None = None


def _error_response(error: ParseError) -> JSONResponse:
    status_code = _STATUS_BY_ERROR.get(error.type, 422)
    return JSONResponse({"success": False, "error": error.to_dict()}, status_code=status_code)


def _success_response(data: Any) -> JSONResponse:
    return JSONResponse({"success": True, "data": data})


async def _run_with_budget(func: Callable[[], T]) -> T:
    # The engine has no checkpoints; a run past the budget is abandoned, not cancelled.
    budget = get_settings().parse_budget_seconds
    return await asyncio.wait_for(run_in_threadpool(func), timeout=budget)


def _timeout_response() -> JSONResponse:
    return JSONResponse(
        {
            "success": False,
            "error": {
                "type": ParseErrorType.parse_failed.value,
                "message": "Parsing this PDF took too long.",
            },
        },
        status_code=504,
    )


def _unexpected_response() -> JSONResponse:
    return JSONResponse(
        {
            "success": False,
            "error": {
                "type": ParseErrorType.parse_failed.value,
                "message": "An unexpected error occurred while parsing the PDF.",
            },
        },
        status_code=500,
    )


@app.post("/api/parse")
async def parse(payload: ParseRequest) -> Response:
    try:
        result = await _run_with_budget(lambda: parse_pdf_from_url(payload.url))
    except ParseError as exc:
        logger.warning("Parse of %s failed: %s %s", payload.url, exc.type.value, exc.message)
        return _error_response(exc)
    except asyncio.TimeoutError:
        logger.warning("Parse of %s exceeded the time budget", payload.url)
        return _timeout_response()
    except Exception:  # noqa: BLE001
        logger.exception("Parse of %s failed", payload.url)
        return _unexpected_response()
    return _success_response(result.to_dict())


@app.post("/api/parse/upload")
async def parse_upload(
    file: UploadFile = File(...),  # noqa: B008
) -> Response:
    settings = get_settings()
    filename = file.filename or "upload.pdf"
    content = await file.read()

    if not content:
        return _error_response(ParseError(ParseErrorType.parse_failed, "Empty upload."))
    if len(content) > settings.max_upload_bytes:
        return _error_response(
            ParseError(
                ParseErrorType.too_large,
                f"File too large (>{settings.max_upload_bytes} bytes).",
            )
        )
    if not filename.lower().endswith(".pdf"):
        return _error_response(ParseError(ParseErrorType.not_a_pdf, "Please upload a .pdf file."))

    try:
        result = await _run_with_budget(
            lambda: parse_pdf_bytes(content, source=filename, require_tables=False)
        )
    except ParseError as exc:
        logger.warning("Parse of upload %s failed: %s", filename, exc.message)
        return _error_response(exc)
    except asyncio.TimeoutError:
        logger.warning("Parse of upload %s exceeded the time budget", filename)
        return _timeout_response()
    except Exception:  # noqa: BLE001
        logger.exception("Parse of upload %s failed", filename)
        return _unexpected_response()
    return _success_response(result.to_dict())


@app.post("/api/calibrate")
def calibrate_table(payload: CalibrateRequest) -> Response:
    raw_rows = [RawRow(cells=tuple(row.cells), y=row.y) for row in payload.raw_rows]
    try:
        table = calibrate(raw_rows, payload.header_row_index, payload.label_column_index)
    except ValueError as exc:
        return JSONResponse(
            {"success": False, "error": {"type": "INVALID_CALIBRATION", "message": str(exc)}},
            status_code=422,
        )
    return _success_response(table.to_dict())


@app.post("/api/lookup")
async def lookup(payload: LookupRequest) -> Response:
    def _run() -> dict[str, Any]:
        pdf_bytes = fetch_pdf(payload.url)
        fragments = load_fragments(pdf_bytes, source=payload.url)
        return lookup_values(fragments, payload.row, payload.column)

    try:
        answer = await _run_with_budget(_run)
    except ParseError as exc:
        logger.warning("Lookup on %s failed: %s %s", payload.url, exc.type.value, exc.message)
        return _error_response(exc)
    except asyncio.TimeoutError:
        logger.warning("Lookup on %s exceeded the time budget", payload.url)
        return _timeout_response()
    except Exception:  # noqa: BLE001
        logger.exception("Lookup on %s failed", payload.url)
        return _unexpected_response()
    return _success_response(answer)


@app.get("/health")
def health() -> PlainTextResponse:
    return PlainTextResponse("ok", media_type="text/plain; charset=utf-8")


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    return Response(status_code=204)
