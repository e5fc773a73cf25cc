# src/schema/forecast_v1.py
from typing import List, Optional
from pydantic import BaseModel, Field

from schema.deal_v1 import DealType, Stage, CLOSED_STAGE
from schema.forecast_spec_v1 import ForecastSpec

SCHEMA_VERSION = "forecast_v1"

LINE_ITEM_COLUMNS = ["deal_id", "deal", "deal_type", "payment_id", "label",
                     "amount", "stage", "date", "probability", "purchase_order_id"]


class LineItem(BaseModel):
    deal_id: int
    deal: str                      # client name, for display only
    deal_type: Optional[DealType] = None
    payment_id: int
    label: str
    amount: float
    stage: Stage
    date: str                      # raw payment date
    probability: Optional[float] = None
    purchase_order_id: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return self.stage == CLOSED_STAGE

    @property
    def expected_amount(self) -> float:
        if self.is_closed:
            return self.amount
        return self.amount * ((self.probability or 0) / 100)


class MonthBucket(BaseModel):
    key: str                       # YYYY-MM
    label: str                     # e.g. "Jan 2025"
    closed: float = 0.0
    open: float = 0.0
    expected_open: float = 0.0
    items: List[LineItem] = Field(default_factory=list)


class PeriodTotals(BaseModel):
    closed: float = 0.0
    open: float = 0.0


class ForecastResult(BaseModel):
    months: List[MonthBucket] = Field(default_factory=list)
    totals: PeriodTotals = PeriodTotals()
    years: List[int] = Field(default_factory=list)
    spec: ForecastSpec = ForecastSpec()
    issues: List[str] = Field(default_factory=list)
