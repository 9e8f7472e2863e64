"""Instagram insight snapshot comparison, narrative and paginated PDF export."""

from insight_report.baseline import BaselineSelection, select_baseline
from insight_report.layout import (
    CaptureError,
    ContentBlock,
    ExportError,
    GeometryError,
    PageGeometry,
    PagePlacement,
    layout,
    layout_async,
)
from insight_report.metrics import ChangeMetric, ComparisonResult, Trend, build_comparison, calculate_change
from insight_report.narrative import generate_narrative
from insight_report.records import Period, PeriodRecord

__all__ = [
    "BaselineSelection",
    "CaptureError",
    "ChangeMetric",
    "ComparisonResult",
    "ContentBlock",
    "ExportError",
    "GeometryError",
    "PageGeometry",
    "PagePlacement",
    "Period",
    "PeriodRecord",
    "Trend",
    "build_comparison",
    "calculate_change",
    "generate_narrative",
    "layout",
    "layout_async",
    "select_baseline",
]
