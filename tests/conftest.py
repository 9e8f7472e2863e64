from __future__ import annotations

import pytest
from PIL import Image

from insight_report.records import (
    ContentTypes,
    EngagementMetrics,
    Period,
    PeriodRecord,
    ProfileActivity,
    Views,
)


def make_record(
    year: int,
    month: int,
    profile_total: int = 100,
    *,
    business_id: str = "biz-1",
    period: Period = Period.LONG,
    reached: int = 1000,
    total_views: int = 5000,
    posts: float = 40.0,
    stories: float = 20.0,
    reels: float = 40.0,
    new_followers: int = 50,
    reactions: int = 300,
    notes: str | None = None,
) -> PeriodRecord:
    return PeriodRecord(
        id=f"{business_id}-{year}-{month:02d}-{period.value}",
        business_id=business_id,
        year=year,
        month=month,
        period=period,
        views=Views(reached_accounts=reached, total_views=total_views),
        content_types=ContentTypes(posts=posts, stories=stories, reels=reels),
        metrics=EngagementMetrics(total_views=total_views, reactions=reactions, new_followers=new_followers),
        profile_activity=ProfileActivity(
            total=profile_total,
            profile_visits=int(profile_total * 0.8),
            external_link_taps=int(profile_total * 0.1),
            business_address_taps=int(profile_total * 0.1),
        ),
        notes=notes,
    )


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def bitmap_factory():
    def _make(height_px: int = 100, width_px: int = 50, color: str = "white") -> Image.Image:
        return Image.new("RGB", (width_px, height_px), color)

    return _make
