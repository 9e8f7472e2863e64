# src/insight_report/generate_data.py
from __future__ import annotations

import argparse
import random
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd

from insight_report.baseline import previous_month
from insight_report.records import FLAT_COLUMNS, PeriodRecord, round1


def _apply_scenario(base: dict, scenario: str) -> dict:
    """
    Adjusts a month's base values to simulate different account conditions.
    Scenarios are designed to push the narrative into its different branches.
    """
    d = dict(base)

    if scenario == "STEADY":
        for k in d:
            d[k] *= random.uniform(0.97, 1.03)

    elif scenario == "CAMPAIGN":
        # Paid push / collab: reach and profile activity jump, reels lead
        d["reached_accounts"] *= random.uniform(1.20, 1.45)
        d["total_views"] *= random.uniform(1.25, 1.50)
        d["reels"] *= random.uniform(1.20, 1.60)
        for k in ("profile_visits", "external_link_taps", "business_address_taps"):
            d[k] *= random.uniform(1.15, 1.40)
        d["new_followers"] *= random.uniform(1.30, 1.80)

    elif scenario == "SLUMP":
        # Posting gap: everything drifts down
        for k in d:
            d[k] *= random.uniform(0.70, 0.90)

    else:
        return _apply_scenario(base, "STEADY")

    return d


def _month_sequence(end_year: int, end_month: int, months: int, gapped: bool) -> list[tuple[int, int]]:
    seq = []
    y, m = end_year, end_month
    while len(seq) < months:
        seq.append((y, m))
        y, m = previous_month(y, m)
        if gapped and len(seq) % 2 == 1:
            # quarterly-style uploads: skip every other month
            y, m = previous_month(y, m)
    return list(reversed(seq))


def generate_synthetic_insights(
    business_id: str = "biz-demo",
    months: int = 6,
    seed: int = 42,
    month_plan: str = "MONTHLY",
    period: str = "30days",
) -> pd.DataFrame:
    """
    Generates a synthetic set of period records for one business.

    month_plan:
      - "MONTHLY": consecutive months ending last month
      - "GAPPED": every other month (exercises the merged-baseline path)
    """
    random.seed(seed)
    np.random.seed(seed)

    today = date.today()
    end_year, end_month = previous_month(today.year, today.month)

    baseline = {
        "reached_accounts": 4_200,
        "total_views": 18_500,
        "posts": 38.0,
        "stories": 24.0,
        "reels": 38.0,
        "metrics_views": 18_500,
        "reactions": 950,
        "new_followers": 120,
        "profile_visits": 640,
        "external_link_taps": 55,
        "business_address_taps": 30,
    }

    rows = []
    sequence = _month_sequence(end_year, end_month, months, month_plan == "GAPPED")
    for i, (year, month) in enumerate(sequence):
        roll = random.random()
        if roll < 0.2:
            scenario = "SLUMP"
        elif roll < 0.45:
            scenario = "CAMPAIGN"
        else:
            scenario = "STEADY"

        # slow organic growth across the period
        growth = 1.0 + 0.04 * i + 0.02 * np.sin(2 * np.pi * i / 12.0)
        d = _apply_scenario({k: v * growth for k, v in baseline.items()}, scenario)

        # content mix is a share of 100
        mix = np.array([d["posts"], d["stories"], d["reels"]], dtype=float)
        mix = mix / mix.sum() * 100

        visits = max(0, int(d["profile_visits"]))
        links = max(0, int(d["external_link_taps"]))
        address = max(0, int(d["business_address_taps"]))

        rows.append({
            "id": f"{business_id}-{year}{month:02d}-{period}",
            "business_id": business_id,
            "year": year,
            "month": month,
            "period": period,
            "reached_accounts": max(0, int(d["reached_accounts"])),
            "total_views": max(0, int(d["total_views"])),
            "posts": round1(mix[0]),
            "stories": round1(mix[1]),
            "reels": round1(mix[2]),
            "metrics_views": max(0, int(d["metrics_views"])),
            "reactions": max(0, int(d["reactions"])),
            "new_followers": max(0, int(d["new_followers"])),
            "profile_total": visits + links + address,
            "profile_visits": visits,
            "external_link_taps": links,
            "business_address_taps": address,
            "notes": f"Synthetic month ({scenario.lower()})",
        })

    return pd.DataFrame(rows, columns=["id", "business_id", "year", "month", "period", *FLAT_COLUMNS.values(), "notes"])


def generate_records(**kwargs) -> list[PeriodRecord]:
    df = generate_synthetic_insights(**kwargs)
    return [PeriodRecord.from_flat(row) for row in df.to_dict(orient="records")]


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic Instagram insight period records.")
    parser.add_argument("--out", type=Path, default=Path("data") / "sample" / "insights_sample.csv")
    parser.add_argument("--business", default="biz-demo")
    parser.add_argument("--months", type=int, default=6)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--plan", choices=["MONTHLY", "GAPPED"], default="MONTHLY")
    args = parser.parse_args()

    df = generate_synthetic_insights(
        business_id=args.business,
        months=args.months,
        seed=args.seed,
        month_plan=args.plan,
    )

    args.out.parent.mkdir(exist_ok=True, parents=True)
    df.to_csv(args.out, index=False)

    print("Synthetic insight records generated:")
    print(args.out)
    print("\nMonths:")
    print((df["year"].astype(str) + "-" + df["month"].map("{:02d}".format)).to_string(index=False))


if __name__ == "__main__":
    main()
