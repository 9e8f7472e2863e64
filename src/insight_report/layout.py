# src/insight_report/layout.py
"""
Section layout engine.

Places a sequence of independently rendered report sections ("content blocks")
onto fixed-size pages. Blocks that fit the space left on the current page go
there; blocks that fit an empty page start a new one; anything taller than a
page is sliced top-to-bottom across as many pages as it needs.

Layout happens in two steps:
  1. plan_pages()  -> pure arithmetic over measured heights (no rendering)
  2. capture + slice -> each block's bitmap is captured once and cut to the plan

Captures are the only slow/fallible part. layout() runs them in order;
layout_async() runs them concurrently. Either way the placement list is
assembled in plan order, and a failed capture fails the whole run.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from PIL import Image as PILImage

logger = logging.getLogger(__name__)

Bitmap = PILImage.Image
CaptureFn = Callable[[], Union[Bitmap, Awaitable[Bitmap]]]

# A4 portrait, millimetres
A4_HEIGHT_MM = 297.0
A4_WIDTH_MM = 210.0
DEFAULT_MARGIN_MM = 10.0
DEFAULT_GAP_MM = 5.0


class ExportError(Exception):
    """Base class for failures while laying out or writing a report."""


class CaptureError(ExportError):
    def __init__(self, block_name: str, reason: str):
        super().__init__(f"Capture failed for block '{block_name}': {reason}")
        self.block_name = block_name


class GeometryError(ExportError):
    """Page geometry (or a block's constraints) can't produce valid pages."""


@dataclass(frozen=True)
class PageGeometry:
    page_height: float = A4_HEIGHT_MM
    page_width: float = A4_WIDTH_MM
    margin: float = DEFAULT_MARGIN_MM
    inter_block_gap: float = DEFAULT_GAP_MM

    @property
    def usable_height(self) -> float:
        return self.page_height - 2 * self.margin

    @property
    def usable_width(self) -> float:
        return self.page_width - 2 * self.margin

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    def validate(self) -> None:
        if self.page_height <= 0 or self.page_width <= 0:
            raise GeometryError(f"Page size must be positive, got {self.page_width}x{self.page_height}")
        if self.margin < 0 or self.inter_block_gap < 0:
            raise GeometryError("Margin and inter-block gap must not be negative")
        if self.margin * 2 >= self.page_height:
            raise GeometryError(
                f"Margin {self.margin} leaves no usable height on a page of height {self.page_height}"
            )
        if self.margin * 2 >= self.page_width:
            raise GeometryError(
                f"Margin {self.margin} leaves no usable width on a page of width {self.page_width}"
            )


@dataclass(frozen=True)
class ContentBlock:
    measured_height: float
    capture: CaptureFn
    break_avoid: bool = False
    name: str = ""
    # smallest slice worth cutting (e.g. one table row); 0 means any
    min_slice_height: float = 0.0


@dataclass(frozen=True)
class SlicePlan:
    block_index: int
    page_index: int
    y: float
    height: float
    offset: float  # distance from the top of the block


@dataclass(frozen=True)
class PagePlacement:
    page_index: int
    bitmap: Bitmap
    x: float
    y: float
    width: float
    height: float


def plan_pages(blocks: list[ContentBlock], geometry: PageGeometry) -> list[SlicePlan]:
    geometry.validate()

    usable = geometry.usable_height
    bottom = geometry.bottom
    margin = geometry.margin
    gap = geometry.inter_block_gap

    plan: list[SlicePlan] = []
    cursor_y = margin
    page_index = 0

    for i, block in enumerate(blocks):
        h = block.measured_height
        if h < 0:
            raise GeometryError(f"Block {block.name or i} has negative height {h}")
        if block.min_slice_height > usable:
            raise GeometryError(
                f"Block {block.name or i} needs slices of at least {block.min_slice_height}, "
                f"but a page only has {usable} usable height"
            )

        remaining = bottom - cursor_y

        fits_here = h <= remaining
        fits_fresh_page = h <= usable and cursor_y > margin

        if fits_here or fits_fresh_page:
            if not fits_here:
                page_index += 1
                cursor_y = margin
                logger.debug("Block %s moved to page %d", block.name or i, page_index)

            plan.append(SlicePlan(i, page_index, cursor_y, h, 0.0))
            cursor_y += h + gap
            if cursor_y > bottom:
                page_index += 1
                cursor_y = margin
            continue

        # taller than a page: slice
        if remaining <= 0 or remaining < block.min_slice_height:
            page_index += 1
            cursor_y = margin
            remaining = usable

        offset = 0.0
        while True:
            take = min(remaining, h - offset)
            plan.append(SlicePlan(i, page_index, cursor_y, take, offset))
            offset += take
            if offset >= h:
                break
            page_index += 1
            cursor_y = margin
            remaining = usable

        cursor_y += take
        if cursor_y >= bottom:
            page_index += 1
            cursor_y = margin

        logger.debug("Block %s split, ends on page %d", block.name or i, page_index)

    return plan


def cut_slice(bitmap: Bitmap, measured_height: float, offset: float, height: float) -> Bitmap:
    """Crop the rows of `bitmap` that correspond to [offset, offset + height) of the block."""
    if offset <= 0 and height >= measured_height:
        return bitmap
    px_per_unit = bitmap.height / measured_height
    # every slice keeps at least one pixel row
    top = min(int(round(offset * px_per_unit)), bitmap.height - 1)
    bottom = int(round((offset + height) * px_per_unit))
    bottom = min(max(bottom, top + 1), bitmap.height)
    return bitmap.crop((0, top, bitmap.width, bottom))


def _assemble(
    plan: list[SlicePlan],
    blocks: list[ContentBlock],
    bitmaps: list[Bitmap],
    geometry: PageGeometry,
) -> list[PagePlacement]:
    placements = []
    for s in plan:
        block = blocks[s.block_index]
        bitmap = bitmaps[s.block_index]
        placements.append(
            PagePlacement(
                page_index=s.page_index,
                bitmap=cut_slice(bitmap, block.measured_height, s.offset, s.height),
                x=geometry.margin,
                y=s.y,
                width=geometry.usable_width,
                height=s.height,
            )
        )
    return placements


def _check_bitmap(block: ContentBlock, index: int, bitmap) -> Bitmap:
    if not isinstance(bitmap, PILImage.Image):
        raise CaptureError(block.name or str(index), f"expected an image, got {type(bitmap).__name__}")
    if bitmap.width == 0 or bitmap.height == 0:
        raise CaptureError(block.name or str(index), "captured an empty image")
    return bitmap


def layout(blocks: list[ContentBlock], geometry: PageGeometry) -> list[PagePlacement]:
    plan = plan_pages(blocks, geometry)

    bitmaps: list[Bitmap] = []
    for i, block in enumerate(blocks):
        name = block.name or str(i)
        try:
            result = block.capture()
        except ExportError:
            raise
        except Exception as exc:
            logger.error("Capture failed for block %s", name)
            raise CaptureError(name, str(exc)) from exc
        if inspect.isawaitable(result):
            if inspect.iscoroutine(result):
                result.close()
            raise CaptureError(name, "capture is asynchronous; use layout_async()")
        bitmaps.append(_check_bitmap(block, i, result))

    return _assemble(plan, blocks, bitmaps, geometry)


async def _capture_async(block: ContentBlock, index: int, timeout: float | None) -> Bitmap:
    name = block.name or str(index)
    try:
        if inspect.iscoroutinefunction(block.capture):
            result = await asyncio.wait_for(block.capture(), timeout)
        else:
            result = await asyncio.wait_for(asyncio.to_thread(block.capture), timeout)
            if inspect.isawaitable(result):
                result = await asyncio.wait_for(result, timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Capture timed out for block %s after %ss", name, timeout)
        raise CaptureError(name, f"timed out after {timeout}s") from exc
    except ExportError:
        raise
    except Exception as exc:
        logger.error("Capture failed for block %s", name)
        raise CaptureError(name, str(exc)) from exc
    return _check_bitmap(block, index, result)


async def layout_async(
    blocks: list[ContentBlock],
    geometry: PageGeometry,
    capture_timeout: float | None = None,
) -> list[PagePlacement]:
    """
    Same result as layout(), but captures run concurrently.
    If any capture fails (or the caller cancels), outstanding captures are
    cancelled and nothing is returned.
    """
    plan = plan_pages(blocks, geometry)

    tasks = [
        asyncio.ensure_future(_capture_async(block, i, capture_timeout))
        for i, block in enumerate(blocks)
    ]
    try:
        bitmaps = await asyncio.gather(*tasks)
    except BaseException:
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    return _assemble(plan, blocks, list(bitmaps), geometry)


def page_count(placements: list[PagePlacement]) -> int:
    return max((p.page_index for p in placements), default=-1) + 1
