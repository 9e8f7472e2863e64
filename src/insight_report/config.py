# src/insight_report/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from insight_report.layout import (
    A4_HEIGHT_MM,
    A4_WIDTH_MM,
    DEFAULT_GAP_MM,
    DEFAULT_MARGIN_MM,
    PageGeometry,
)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env(name: str, default: str = "") -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default.strip()
    value = raw.strip().strip("'\"").strip()
    return value if value else default.strip()


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    return int(raw) if raw else default


def _env_optional_float(name: str) -> float | None:
    raw = _env(name)
    return float(raw) if raw else None


@dataclass(frozen=True)
class ReportConfig:
    data_path: Path
    output_dir: Path
    page_height_mm: float = A4_HEIGHT_MM
    page_width_mm: float = A4_WIDTH_MM
    margin_mm: float = DEFAULT_MARGIN_MM
    gap_mm: float = DEFAULT_GAP_MM
    dpi: int = 200
    capture_timeout: float | None = None
    log_level: str = "INFO"

    @property
    def geometry(self) -> PageGeometry:
        return PageGeometry(
            page_height=self.page_height_mm,
            page_width=self.page_width_mm,
            margin=self.margin_mm,
            inter_block_gap=self.gap_mm,
        )

    @classmethod
    def from_env(cls) -> "ReportConfig":
        return cls(
            data_path=Path(_env("INSIGHT_REPORT_DATA", str(PROJECT_ROOT / "data" / "sample" / "insights_sample.csv"))),
            output_dir=Path(_env("INSIGHT_REPORT_OUTPUT_DIR", str(PROJECT_ROOT / "reports"))),
            page_height_mm=_env_float("INSIGHT_REPORT_PAGE_HEIGHT_MM", A4_HEIGHT_MM),
            page_width_mm=_env_float("INSIGHT_REPORT_PAGE_WIDTH_MM", A4_WIDTH_MM),
            margin_mm=_env_float("INSIGHT_REPORT_MARGIN_MM", DEFAULT_MARGIN_MM),
            gap_mm=_env_float("INSIGHT_REPORT_GAP_MM", DEFAULT_GAP_MM),
            dpi=_env_int("INSIGHT_REPORT_DPI", 200),
            capture_timeout=_env_optional_float("INSIGHT_REPORT_CAPTURE_TIMEOUT"),
            log_level=_env("INSIGHT_REPORT_LOG_LEVEL", "INFO").upper(),
        )
