# streamlit_app.py
import streamlit as st
import pandas as pd
import asyncio
import hashlib
import json

from agents.forecast_agent import narrate_forecast
from core.aggregate import aggregate
from core.deals_io import deals_from_frame, load_deals_json
from core.logging_config import configure_logging
from core.projection import available_years, build_forecast, with_defaults
from schema.deal_v1 import CLOSED_STAGE, DEAL_TYPES, STAGES
from schema.forecast_spec_v1 import ForecastSpec

configure_logging()

st.set_page_config(page_title="Deal Pipeline & Cash Flow Forecast", page_icon="💼", layout="wide")
st.title("💼 Deal Pipeline & Cash Flow Forecast")
st.caption("Pipeline by stage → payments grouped by month → closed vs. open cash, gross or probability-weighted.")

STAGE_NAMES = {"PROSPECCAO": "Prospecting", "CONVERSA": "Conversation", "PROPOSTA": "Proposal", "FECHADO": "Closed"}
TYPE_NAMES = {"ALL": "All types", "CONSULTORIA": "Consulting", "PD": "R&D", "SAAS": "SaaS"}

# --- Session state (cache parsed deals per file signature) ---
if "deals_cache" not in st.session_state:
    st.session_state.deals_cache = {}
if "narrative" not in st.session_state:
    st.session_state.narrative = None

# --- Helpers ---
def _file_sig(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()

def _money(v: float) -> str:
    return f"{v:,.2f}"

def _load(uploaded):
    data = uploaded.getvalue()
    sig = _file_sig(data)
    if sig in st.session_state.deals_cache:
        return st.session_state.deals_cache[sig]
    name = uploaded.name.lower()
    if name.endswith(".json"):
        pack = load_deals_json(data)
    elif name.endswith(".csv"):
        pack = deals_from_frame(pd.read_csv(uploaded, low_memory=False))
    else:
        pack = deals_from_frame(pd.read_excel(uploaded))
    st.session_state.deals_cache[sig] = pack
    st.session_state.narrative = None
    return pack

# --- Upload ---
st.subheader("📂 Upload deals")
uploaded_file = st.file_uploader(
    "JSON list of deals, or CSV/XLSX with one payment per row "
    "(client, stage, probability, deal_type, industry, label, date, amount, purchase_order)",
    type=["json", "csv", "xlsx", "xls"],
)

if not uploaded_file:
    st.info("Upload a deals file to begin.")
    st.stop()

try:
    deals, load_issues = _load(uploaded_file)
except (ValueError, json.JSONDecodeError) as e:
    st.error(f"❌ Error reading file: {e}")
    st.stop()

if load_issues:
    st.warning("**Import issues:**\n- " + "\n- ".join(load_issues))

# ---- Pipeline board ----
st.subheader("🗂️ Pipeline")
columns = st.columns(len(STAGES))
for col, stage in zip(columns, STAGES):
    stage_deals = [d for d in deals if d.stage == stage]
    with col:
        st.markdown(f"**{STAGE_NAMES[stage]}** ({len(stage_deals)})")
        for deal in stage_deals:
            total = sum(p.amount for p in deal.payments)
            with st.container(border=True):
                st.markdown(f"**{deal.client}**")
                meta = [TYPE_NAMES.get(deal.deal_type, "")] if deal.deal_type else []
                if deal.industry:
                    meta.append(deal.industry)
                if stage != CLOSED_STAGE and deal.probability is not None:
                    meta.append(f"{deal.probability:.0f}%")
                if meta:
                    st.caption(" • ".join(meta))
                st.write(_money(total))
                if deal.next_step:
                    st.caption(f"Next: {deal.next_step}")

# ---- Forecast ----
st.subheader("📈 Cash flow by month")

only_po = st.checkbox("Only count payments with a purchase order (PO) issued", value=False)
base_buckets, _ = aggregate(deals, only_with_purchase_order=only_po)
defaults = with_defaults(ForecastSpec(), base_buckets)
years = available_years(base_buckets) or [defaults.year]
month_keys = [b.key for b in base_buckets]

col_a, col_b, col_c, col_d = st.columns([1, 2, 1, 1])
with col_a:
    period_mode = st.radio("Period", ["custom", "semester", "year"],
                           format_func={"custom": "Free", "semester": "Semester", "year": "Year"}.get)
spec_args = {"period_mode": period_mode}
with col_b:
    if period_mode == "custom" and month_keys:
        start, end = st.select_slider("From / to", options=month_keys,
                                      value=(defaults.custom_from, defaults.custom_to))
        spec_args.update(custom_from=start, custom_to=end)
    elif period_mode in ("semester", "year"):
        spec_args["year"] = st.selectbox("Year", years, index=years.index(defaults.year) if defaults.year in years else 0)
        if period_mode == "semester":
            spec_args["semester"] = st.selectbox("Semester", [1, 2], format_func=lambda s: f"H{s}")
with col_c:
    spec_args["value_mode"] = st.radio("Value", ["gross", "expected"],
                                       format_func={"gross": "Gross", "expected": "Expected"}.get)
with col_d:
    spec_args["deal_type"] = st.selectbox("Deal type", ["ALL"] + DEAL_TYPES, format_func=TYPE_NAMES.get)

spec = ForecastSpec(only_with_purchase_order=only_po, **spec_args)
result = build_forecast(deals, spec)
expected = spec.value_mode == "expected"

m1, m2 = st.columns(2)
m1.metric("Closed in period", _money(result.totals.closed))
m2.metric("Open in period" + (" (expected)" if expected else ""), _money(result.totals.open))

if result.issues:
    with st.expander(f"⚠️ {len(result.issues)} payment(s) skipped"):
        st.markdown("- " + "\n- ".join(result.issues))

if not result.months:
    st.info("No payments in the selected period.")

for month in result.months:
    with st.container(border=True):
        st.markdown(f"**{month.label}**")
        c1, c2 = st.columns(2)
        c1.metric("Closed", _money(month.closed))
        c2.metric("Open", _money(month.expected_open if expected else month.open))
        if month.items:
            st.dataframe(
                pd.DataFrame([{
                    "client": i.deal,
                    "label": i.label,
                    "date": i.date[:10],
                    "stage": STAGE_NAMES[i.stage],
                    "amount": i.amount,
                    "expected": i.expected_amount,
                } for i in month.items]),
                use_container_width=True,
                hide_index=True,
            )

# Export button
visible_items = [dict(month=m.key, **i.model_dump()) for m in result.months for i in m.items]
st.download_button(
    "⬇️ Export visible line items (CSV)",
    data=pd.DataFrame(visible_items).to_csv(index=False).encode("utf-8"),
    file_name="forecast_items.csv",
    mime="text/csv",
    use_container_width=True,
    disabled=not visible_items,
)

# ---- Narrative ----
st.subheader("📝 Forecast commentary")
if st.button("✍️ Summarize forecast"):
    with st.spinner("Asking the model to summarize the visible forecast…"):
        try:
            st.session_state.narrative = asyncio.run(narrate_forecast(result))
        except Exception as e:
            st.error(f"❌ Error generating commentary: {e}")

if st.session_state.narrative:
    st.markdown(st.session_state.narrative)
