# core/llm_forecast_prompt.py
from schema.forecast_v1 import ForecastResult

FORECAST_SYSTEM = """You are a sales finance analyst.
You receive a monthly cash-flow forecast built from a deal pipeline.
Closed = cash from deals in the closed stage. Open = cash from deals still in negotiation.
Do NOT invent numbers; use only the figures given."""

FORECAST_USER_TMPL = """Period: {period}
Value mode: {value_mode} ({value_note})
Deal type filter: {deal_type}
Only payments with a purchase order: {only_po}

Period totals: closed {closed:.2f}, open {open:.2f}

Months (key | closed | open | expected open | line items):
{months}

Open value by client:
{clients}

Data quality issues:
{issues}

Write in Markdown:
1) Two or three lines on the overall outlook for the period.
2) The months with the highest and lowest total.
3) Concentration risk: clients holding a large share of open value.
Use two decimal places."""


def _period(spec) -> str:
    if spec.period_mode == "custom":
        return f"{spec.custom_from or 'start'} to {spec.custom_to or 'end'}"
    if spec.period_mode == "year":
        return f"year {spec.year}"
    return f"semester {spec.semester} of {spec.year}"


def build_forecast_prompt(result: ForecastResult) -> str:
    spec = result.spec
    months = "\n".join(
        f"{m.key} | {m.closed:.2f} | {m.open:.2f} | {m.expected_open:.2f} | {len(m.items)}"
        for m in result.months
    ) or "(no months in period)"
    by_client = {}
    for m in result.months:
        for item in m.items:
            if not item.is_closed:
                by_client[item.deal] = by_client.get(item.deal, 0.0) + item.amount
    clients = "\n".join(
        f"{name}: {amount:.2f}" for name, amount in sorted(by_client.items(), key=lambda kv: -kv[1])
    ) or "(none)"
    return FORECAST_USER_TMPL.format(
        period=_period(spec),
        value_mode=spec.value_mode,
        value_note="open weighted by deal probability" if spec.value_mode == "expected" else "raw amounts",
        deal_type=spec.deal_type,
        only_po="yes" if spec.only_with_purchase_order else "no",
        closed=result.totals.closed,
        open=result.totals.open,
        months=months,
        clients=clients,
        issues="\n".join(result.issues) if result.issues else "None",
    )
