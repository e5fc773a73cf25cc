# src/schema/forecast_spec_v1.py
from typing import Optional, Literal, Union
from pydantic import BaseModel, Field

from schema.deal_v1 import DealType

SPEC_VERSION = "forecast_spec_v1"

MONTH_KEY_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"

PeriodMode = Literal["custom", "semester", "year"]
ValueMode = Literal["gross", "expected"]


class ForecastSpec(BaseModel):
    """User-selected view over the monthly buckets.

    Unset range/year fields are resolved from the data by
    ``core.projection.with_defaults``. A custom range whose start is after its
    end is accepted and selects no months.
    """
    period_mode: PeriodMode = "custom"
    custom_from: Optional[str] = Field(default=None, pattern=MONTH_KEY_PATTERN)
    custom_to: Optional[str] = Field(default=None, pattern=MONTH_KEY_PATTERN)
    year: Optional[int] = Field(default=None, ge=1, le=9999)
    semester: Literal[1, 2] = 1
    deal_type: Union[Literal["ALL"], DealType] = "ALL"
    only_with_purchase_order: bool = False
    value_mode: ValueMode = "gross"
