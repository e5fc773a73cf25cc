# core/aggregate.py
from datetime import date
from typing import Iterable, List, Optional, Tuple

import pandas as pd
import structlog
from dateutil.parser import isoparse

from schema.deal_v1 import CLOSED_STAGE, Deal
from schema.forecast_v1 import LINE_ITEM_COLUMNS, LineItem, MonthBucket

logger = structlog.get_logger(__name__)


def _parse_date(x) -> Optional[date]:
    s = str(x or "").strip()
    if not s:
        return None
    try:
        return isoparse(s).date()
    except (ValueError, OverflowError):
        return None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def month_label(key: str) -> str:
    year, month = key.split("-")
    return f"{MONTH_NAMES[int(month) - 1]} {year}"


def line_items(deals: Iterable[Deal], only_with_purchase_order: bool = False) -> Tuple[List[LineItem], List[str], List[str]]:
    """Flatten deals into line items in input order.

    Returns (items, month keys aligned with items, issues). Payments whose date
    does not parse are left out and reported in issues.
    """
    items, keys, issues = [], [], []
    for deal in deals:
        for payment in deal.payments:
            if only_with_purchase_order and payment.purchase_order_id is None:
                continue
            parsed = _parse_date(payment.date)
            if parsed is None:
                issues.append(
                    f"Payment {payment.id} ({payment.label!r}) of deal {deal.id} ({deal.client!r}) "
                    f"has unparsable date {payment.date!r}; skipped."
                )
                continue
            keys.append(month_key(parsed))
            items.append(LineItem(
                deal_id=deal.id,
                deal=deal.client,
                deal_type=deal.deal_type,
                payment_id=payment.id,
                label=payment.label,
                amount=payment.amount,
                stage=deal.stage,
                date=payment.date,
                probability=deal.probability,
                purchase_order_id=payment.purchase_order_id,
            ))
    return items, keys, issues


def items_frame(items: List[LineItem]) -> pd.DataFrame:
    return pd.DataFrame([i.model_dump() for i in items], columns=LINE_ITEM_COLUMNS)


def frame_totals(df: pd.DataFrame) -> dict:
    """closed / open / probability-weighted open sums of a line-item frame."""
    closed = df["stage"] == CLOSED_STAGE
    amount = pd.to_numeric(df["amount"], errors="coerce").fillna(0.0)
    weight = pd.to_numeric(df["probability"], errors="coerce").fillna(0.0) / 100
    return {
        "closed": float(amount[closed].sum()),
        "open": float(amount[~closed].sum()),
        "expected_open": float((amount[~closed] * weight[~closed]).sum()),
    }


def bucket_totals(items: List[LineItem]) -> dict:
    return frame_totals(items_frame(items))


def aggregate(deals: Iterable[Deal], only_with_purchase_order: bool = False) -> Tuple[List[MonthBucket], List[str]]:
    """Group every dated payment into its calendar month.

    Amounts of deals in the closed stage go to ``closed``; every other stage
    goes to ``open``. Buckets come back sorted by key.
    """
    items, keys, issues = line_items(deals, only_with_purchase_order)
    if issues:
        logger.warning("forecast.payments_skipped", count=len(issues))
    if not items:
        return [], issues

    # 1) One row per line item, index aligned with `items`
    df = items_frame(items)
    df["key"] = keys

    # 2) Group by month; row order inside each group follows input order
    buckets = []
    for key, group in df.groupby("key", sort=True):
        buckets.append(MonthBucket(
            key=key,
            label=month_label(key),
            items=[items[idx] for idx in group.index],
            **frame_totals(group),
        ))

    logger.debug("forecast.aggregated", months=len(buckets), items=len(items))
    return buckets, issues
