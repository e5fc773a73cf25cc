# core/deals_io.py
import json
import re
from typing import List, Tuple, Union

import pandas as pd
from pydantic import ValidationError

from schema.deal_v1 import DEAL_TYPES, STAGES, Deal, Payment, PurchaseOrder

FLAT_COLUMNS = ["deal_id", "client", "stage", "probability", "deal_type", "industry",
                "label", "date", "amount", "purchase_order"]


def _to_num(x):
    y = re.sub(r"[^\d\.\-\(\)]", "", str(x).replace(",", ""))
    neg = y.startswith("(") and y.endswith(")")
    y = y.strip("()")
    try:
        v = float(y) if y not in ("", "None", "nan") else 0.0
    except ValueError:
        v = 0.0
    return -abs(v) if neg else v


def _text(x):
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    s = str(x).strip()
    return s or None


def load_deals_json(raw: Union[str, bytes]) -> Tuple[List[Deal], List[str]]:
    """Parse a JSON list of deal objects (the API's /deals shape).

    Entries that do not validate are dropped and reported in the issues list.
    """
    issues = []
    data = json.loads(raw)
    if isinstance(data, dict) and "deals" in data:
        data = data["deals"]
    if not isinstance(data, list):
        raise ValueError("Expected a JSON list of deals")

    deals = []
    for n, entry in enumerate(data, start=1):
        try:
            deals.append(Deal.model_validate(entry))
        except ValidationError as e:
            issues.append(f"Deal #{n} rejected: {e.error_count()} validation error(s).")
    return deals, issues


def deals_from_frame(df: pd.DataFrame) -> Tuple[List[Deal], List[str]]:
    """Build deals from a flat table with one payment per row.

    Each row is grouped by its ``deal_id`` when it has one, otherwise by its
    ``client``. The first row of a group supplies the deal fields.
    ``purchase_order`` holds any PO reference; each distinct reference within a
    deal becomes one NF purchase order on that deal, linked to its rows.
    """
    issues = []

    # 1) Canonical column names
    df = df.rename(columns={c: str(c).strip().lower().replace(" ", "_") for c in df.columns})
    for c in FLAT_COLUMNS:
        if c not in df.columns:
            df[c] = None
    df["client"] = df["client"].map(_text)
    if df["client"].isna().all():
        raise ValueError("Column 'client' is required")

    # 2) Drop rows without a client
    missing = int(df["client"].isna().sum())
    if missing:
        issues.append(f"{missing} row(s) without client dropped.")
    df = df.dropna(subset=["client"]).reset_index(drop=True)

    # 3) Normalise cell values
    df["stage"] = df["stage"].map(lambda v: (_text(v) or "PROSPECCAO").upper())
    df["deal_type"] = df["deal_type"].map(lambda v: (_text(v) or "").upper() or None)
    df["amount"] = df["amount"].apply(_to_num)
    df["probability"] = pd.to_numeric(df["probability"], errors="coerce")

    bad_stage = ~df["stage"].isin(STAGES)
    if bad_stage.any():
        issues.append(f"{int(bad_stage.sum())} row(s) with unknown stage set to PROSPECCAO.")
        df.loc[bad_stage, "stage"] = "PROSPECCAO"
    bad_type = df["deal_type"].notna() & ~df["deal_type"].isin(DEAL_TYPES)
    if bad_type.any():
        issues.append(f"{int(bad_type.sum())} row(s) with unknown deal type cleared.")
        df.loc[bad_type, "deal_type"] = None

    # 4) Group into deals, keeping first-seen order. Rows with a deal_id group
    # by it; rows without one fall back to their client.
    df["_group"] = [f"id:{_text(i)}" if _text(i) is not None else f"client:{c}"
                    for i, c in zip(df["deal_id"], df["client"])]
    deals = []
    payment_id = 0
    po_id = 0
    for n, (_, rows) in enumerate(df.groupby("_group", sort=False), start=1):
        head = rows.iloc[0]
        probability = head["probability"]
        payments = []
        purchase_orders = {}
        for _, row in rows.iterrows():
            label = _text(row["label"])
            if label is None and _text(row["date"]) is None:
                continue  # deal row without a payment
            payment_id += 1
            po_ref = _text(row["purchase_order"])
            if po_ref is not None and po_ref not in purchase_orders:
                po_id += 1
                purchase_orders[po_ref] = PurchaseOrder(id=po_id, number=po_ref, type="NF", deal_id=n)
            payments.append(Payment(
                id=payment_id,
                label=label or "",
                # dates stay raw; unparsable ones surface later in the forecast issues
                date=str(row["date"].date() if isinstance(row["date"], pd.Timestamp) else _text(row["date"]) or ""),
                amount=row["amount"],
                purchase_order_id=purchase_orders[po_ref].id if po_ref is not None else None,
            ))
        deals.append(Deal(
            id=n,
            client=head["client"],
            stage=head["stage"],
            industry=_text(head["industry"]),
            deal_type=_text(head["deal_type"]),
            probability=50.0 if pd.isna(probability) else float(min(max(probability, 0), 100)),
            payments=payments,
            purchase_orders=list(purchase_orders.values()),
        ))
    return deals, issues
