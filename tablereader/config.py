from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

ENV_MAX_UPLOAD_BYTES: Final[str] = "TABLEREADER_MAX_UPLOAD_BYTES"
ENV_MAX_PAGES: Final[str] = "TABLEREADER_MAX_PAGES"
ENV_FETCH_TIMEOUT_SECONDS: Final[str] = "TABLEREADER_FETCH_TIMEOUT_SECONDS"
ENV_PARSE_BUDGET_SECONDS: Final[str] = "TABLEREADER_PARSE_BUDGET_SECONDS"
ENV_USER_AGENT: Final[str] = "TABLEREADER_USER_AGENT"

ENV_Y_TOLERANCE: Final[str] = "TABLEREADER_Y_TOLERANCE"
ENV_X_TOLERANCE: Final[str] = "TABLEREADER_X_TOLERANCE"
ENV_TABLE_GAP_THRESHOLD: Final[str] = "TABLEREADER_TABLE_GAP_THRESHOLD"
ENV_MIN_TABLE_ROWS: Final[str] = "TABLEREADER_MIN_TABLE_ROWS"
ENV_MIN_COLUMNS: Final[str] = "TABLEREADER_MIN_COLUMNS"
ENV_ROW_ANCHOR: Final[str] = "TABLEREADER_ROW_ANCHOR"
ENV_COLUMN_STRATEGY: Final[str] = "TABLEREADER_COLUMN_STRATEGY"
ENV_HEADER_STRATEGY: Final[str] = "TABLEREADER_HEADER_STRATEGY"
ENV_HEADER_KEYWORDS: Final[str] = "TABLEREADER_HEADER_KEYWORDS"
ENV_SECTION_KEYWORDS: Final[str] = "TABLEREADER_SECTION_KEYWORDS"
ENV_LOOKUP_X_TOLERANCE: Final[str] = "TABLEREADER_LOOKUP_X_TOLERANCE"
ENV_LOOKUP_Y_TOLERANCE: Final[str] = "TABLEREADER_LOOKUP_Y_TOLERANCE"

DEFAULT_MAX_UPLOAD_BYTES: Final[int] = 10 * 1024 * 1024
DEFAULT_MAX_PAGES: Final[int] = 50
DEFAULT_FETCH_TIMEOUT_SECONDS: Final[float] = 30.0
DEFAULT_PARSE_BUDGET_SECONDS: Final[float] = 30.0
DEFAULT_USER_AGENT: Final[str] = "Mozilla/5.0 (compatible; TableReader/1.0)"

DEFAULT_Y_TOLERANCE: Final[float] = 3.0
DEFAULT_X_TOLERANCE: Final[float] = 10.0
DEFAULT_TABLE_GAP_THRESHOLD: Final[float] = 30.0
DEFAULT_MIN_TABLE_ROWS: Final[int] = 2
DEFAULT_MIN_COLUMNS: Final[int] = 2
DEFAULT_ROW_ANCHOR: Final[str] = "mean"
DEFAULT_COLUMN_STRATEGY: Final[str] = "auto"
DEFAULT_HEADER_STRATEGY: Final[str] = "ratio"
DEFAULT_LOOKUP_X_TOLERANCE: Final[float] = 40.0
DEFAULT_LOOKUP_Y_TOLERANCE: Final[float] = 15.0

SUPPORTED_ROW_ANCHORS: Final[tuple[str, ...]] = ("mean", "first")
SUPPORTED_COLUMN_STRATEGIES: Final[tuple[str, ...]] = ("auto", "median", "cluster")
SUPPORTED_HEADER_STRATEGIES: Final[tuple[str, ...]] = ("ratio", "first-text")

DEFAULT_HEADER_KEYWORDS: Final[tuple[str, ...]] = (
    "calorie",
    "fat",
    "sodium",
    "carb",
    "protein",
    "sugar",
    "fiber",
    "serving",
    "weight",
    "cholesterol",
    "vitamin",
    "calcium",
    "iron",
)

DEFAULT_SECTION_KEYWORDS: Final[tuple[str, ...]] = (
    "toppings",
    "appetizers",
    "wings",
    "salads",
    "dressings",
    "wraps",
    "pastas",
    "meat",
    "chicken",
    "veggie",
    "cheese",
    "desserts",
    "beverages",
    "kids",
    "pizzas",
    "nutrition facts",
    "daily value",
)


@dataclass(frozen=True)
class Settings:
    max_upload_bytes: int
    max_pages: int
    fetch_timeout_seconds: float
    parse_budget_seconds: float
    user_agent: str


@dataclass(frozen=True)
class DetectorConfig:
    """
    Tuning knobs for table reconstruction and keyword lookup.

    Tight tables usually want `y_tolerance` around 2-3pt, looser layouts around 5pt.
    Pass a customised instance (see `dataclasses.replace`) to any engine function.
    """

    y_tolerance: float = DEFAULT_Y_TOLERANCE
    x_tolerance: float = DEFAULT_X_TOLERANCE
    table_gap_threshold: float = DEFAULT_TABLE_GAP_THRESHOLD
    min_table_rows: int = DEFAULT_MIN_TABLE_ROWS
    min_columns: int = DEFAULT_MIN_COLUMNS
    row_anchor: str = DEFAULT_ROW_ANCHOR
    column_strategy: str = DEFAULT_COLUMN_STRATEGY
    header_strategy: str = DEFAULT_HEADER_STRATEGY
    header_scan_rows: int = 5
    header_keywords: tuple[str, ...] = DEFAULT_HEADER_KEYWORDS
    section_keywords: tuple[str, ...] = DEFAULT_SECTION_KEYWORDS
    lookup_x_tolerance: float = DEFAULT_LOOKUP_X_TOLERANCE
    lookup_y_tolerance: float = DEFAULT_LOOKUP_Y_TOLERANCE
    header_row_gap: float = 5.0
    row_label_band_width: float = 100.0
    section_max_length: int = 25


def _get_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an int, got: {raw!r}") from exc
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got: {value}")
    return value


def _get_nonnegative_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got: {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got: {value}")
    return value


def _get_choice(name: str, default: str, choices: tuple[str, ...]) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}, got: {raw!r}")
    return value


def _get_keywords(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    keywords = tuple(part.strip().lower() for part in raw.split(",") if part.strip())
    if not keywords:
        raise ValueError(f"{name} must list at least one keyword, got: {raw!r}")
    return keywords


def _get_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip()
    return value or default


def get_settings() -> Settings:
    return Settings(
        max_upload_bytes=_get_positive_int(ENV_MAX_UPLOAD_BYTES, DEFAULT_MAX_UPLOAD_BYTES),
        max_pages=_get_positive_int(ENV_MAX_PAGES, DEFAULT_MAX_PAGES),
        fetch_timeout_seconds=_get_nonnegative_float(
            ENV_FETCH_TIMEOUT_SECONDS, DEFAULT_FETCH_TIMEOUT_SECONDS
        ),
        parse_budget_seconds=_get_nonnegative_float(
            ENV_PARSE_BUDGET_SECONDS, DEFAULT_PARSE_BUDGET_SECONDS
        ),
        user_agent=_get_str(ENV_USER_AGENT, DEFAULT_USER_AGENT),
    )


def get_detector_config() -> DetectorConfig:
    return DetectorConfig(
        y_tolerance=_get_nonnegative_float(ENV_Y_TOLERANCE, DEFAULT_Y_TOLERANCE),
        x_tolerance=_get_nonnegative_float(ENV_X_TOLERANCE, DEFAULT_X_TOLERANCE),
        table_gap_threshold=_get_nonnegative_float(
            ENV_TABLE_GAP_THRESHOLD, DEFAULT_TABLE_GAP_THRESHOLD
        ),
        min_table_rows=_get_positive_int(ENV_MIN_TABLE_ROWS, DEFAULT_MIN_TABLE_ROWS),
        min_columns=_get_positive_int(ENV_MIN_COLUMNS, DEFAULT_MIN_COLUMNS),
        row_anchor=_get_choice(ENV_ROW_ANCHOR, DEFAULT_ROW_ANCHOR, SUPPORTED_ROW_ANCHORS),
        column_strategy=_get_choice(
            ENV_COLUMN_STRATEGY, DEFAULT_COLUMN_STRATEGY, SUPPORTED_COLUMN_STRATEGIES
        ),
        header_strategy=_get_choice(
            ENV_HEADER_STRATEGY, DEFAULT_HEADER_STRATEGY, SUPPORTED_HEADER_STRATEGIES
        ),
        header_keywords=_get_keywords(ENV_HEADER_KEYWORDS, DEFAULT_HEADER_KEYWORDS),
        section_keywords=_get_keywords(ENV_SECTION_KEYWORDS, DEFAULT_SECTION_KEYWORDS),
        lookup_x_tolerance=_get_nonnegative_float(
            ENV_LOOKUP_X_TOLERANCE, DEFAULT_LOOKUP_X_TOLERANCE
        ),
        lookup_y_tolerance=_get_nonnegative_float(
            ENV_LOOKUP_Y_TOLERANCE, DEFAULT_LOOKUP_Y_TOLERANCE
        ),
    )
