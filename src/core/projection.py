# core/projection.py
from datetime import date
from typing import Iterable, List, Optional, Tuple

import structlog

from core.aggregate import aggregate, bucket_totals
from schema.deal_v1 import Deal
from schema.forecast_spec_v1 import ForecastSpec
from schema.forecast_v1 import ForecastResult, LineItem, MonthBucket, PeriodTotals

logger = structlog.get_logger(__name__)


def available_years(buckets: List[MonthBucket]) -> List[int]:
    return sorted({int(b.key[:4]) for b in buckets})


def period_bounds(spec: ForecastSpec) -> Tuple[Optional[str], Optional[str]]:
    """Inclusive (from, to) month keys for the selected period mode; None means open-ended."""
    if spec.period_mode == "custom":
        return spec.custom_from, spec.custom_to
    year = f"{spec.year:04d}"
    if spec.period_mode == "year":
        return f"{year}-01", f"{year}-12"
    if spec.semester == 1:
        return f"{year}-01", f"{year}-06"
    return f"{year}-07", f"{year}-12"


def with_defaults(spec: ForecastSpec, buckets: List[MonthBucket]) -> ForecastSpec:
    """Fill an unset custom range and year from the data.

    The range spans the first to the last month present and the year is the
    earliest one present. Without data the year falls back to the current one.
    """
    updates = {}
    if buckets and spec.custom_from is None and spec.custom_to is None:
        updates["custom_from"] = buckets[0].key
        updates["custom_to"] = buckets[-1].key
    if spec.year is None:
        years = available_years(buckets)
        updates["year"] = years[0] if years else date.today().year
    return spec.model_copy(update=updates) if updates else spec


def _keep(item: LineItem, spec: ForecastSpec) -> bool:
    if spec.deal_type != "ALL" and item.deal_type != spec.deal_type:
        return False
    if spec.only_with_purchase_order and item.purchase_order_id is None:
        return False
    return True


def _in_period(key: str, lo: Optional[str], hi: Optional[str]) -> bool:
    # zero-padded YYYY-MM keys compare chronologically as strings
    return (lo is None or key >= lo) and (hi is None or key <= hi)


def period_totals(buckets: List[MonthBucket], value_mode: str) -> PeriodTotals:
    closed = sum(b.closed for b in buckets)
    if value_mode == "expected":
        return PeriodTotals(closed=closed, open=sum(b.expected_open for b in buckets))
    return PeriodTotals(closed=closed, open=sum(b.open for b in buckets))


def project(buckets: List[MonthBucket], spec: ForecastSpec) -> Tuple[List[MonthBucket], PeriodTotals]:
    """Apply item filters, the period window and the value mode to aggregated buckets.

    Item filters re-derive each month's totals from its surviving items; a month
    with no surviving items is kept with zero totals.
    """
    if spec.period_mode != "custom" and spec.year is None:
        spec = with_defaults(spec, buckets)

    # 1) Item filters, then re-total each month
    filtered = []
    for bucket in buckets:
        items = [i for i in bucket.items if _keep(i, spec)]
        if len(items) == len(bucket.items):
            filtered.append(bucket)
            continue
        filtered.append(bucket.model_copy(update={"items": items, **bucket_totals(items)}))

    # 2) Period window
    lo, hi = period_bounds(spec)
    visible = [b for b in filtered if _in_period(b.key, lo, hi)]

    # 3) Period totals in the selected value mode
    return visible, period_totals(visible, spec.value_mode)


def build_forecast(deals: Iterable[Deal], spec: Optional[ForecastSpec] = None) -> ForecastResult:
    """Deals in, filtered monthly forecast out. Pure; safe to call concurrently."""
    spec = spec or ForecastSpec()
    # PO filter runs during aggregation so excluded payments never reach a bucket
    buckets, issues = aggregate(deals, only_with_purchase_order=spec.only_with_purchase_order)
    spec = with_defaults(spec, buckets)
    months, totals = project(buckets, spec)
    logger.info(
        "forecast.built",
        period_mode=spec.period_mode,
        value_mode=spec.value_mode,
        months=len(months),
        closed=totals.closed,
        open=totals.open,
        skipped=len(issues),
    )
    return ForecastResult(
        months=months,
        totals=totals,
        years=available_years(buckets),
        spec=spec,
        issues=issues,
    )
