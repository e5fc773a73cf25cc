# src/schema/deal_v1.py
from datetime import date as Date
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, field_validator

SCHEMA_VERSION = "deal_v1"

Stage = Literal["PROSPECCAO", "CONVERSA", "PROPOSTA", "FECHADO"]
STAGES: List[str] = ["PROSPECCAO", "CONVERSA", "PROPOSTA", "FECHADO"]
CLOSED_STAGE = "FECHADO"

DealType = Literal["CONSULTORIA", "PD", "SAAS"]
DEAL_TYPES: List[str] = ["CONSULTORIA", "PD", "SAAS"]

PurchaseOrderType = Literal["NF", "Invoice"]


class Payment(BaseModel):
    id: int
    label: str
    date: str                      # ISO date or timestamp, kept raw
    amount: float
    purchase_order_id: Optional[int] = None


class PurchaseOrder(BaseModel):
    id: int
    number: str
    type: PurchaseOrderType
    payment_terms: int = 30        # days
    deal_id: int


class Deal(BaseModel):
    id: int
    client: str
    stage: Stage = "PROSPECCAO"
    industry: Optional[str] = None
    deal_type: Optional[DealType] = None
    probability: Optional[float] = 50
    next_step: Optional[str] = None
    decision_maker: Optional[str] = None
    payments: List[Payment] = Field(default_factory=list)
    purchase_orders: List[PurchaseOrder] = Field(default_factory=list)


# --------- Request payloads (validated at the API boundary) ---------

class PaymentCreate(BaseModel):
    label: str = Field(min_length=1)
    date: Date
    amount: float = Field(ge=0)


class PaymentUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1)
    date: Optional[Date] = None
    amount: Optional[float] = Field(default=None, ge=0)


class DealCreate(BaseModel):
    client: str = Field(min_length=1)
    stage: Stage = "PROSPECCAO"
    industry: Optional[str] = None
    deal_type: Optional[DealType] = None
    probability: float = Field(default=50, ge=0, le=100)
    next_step: Optional[str] = None
    decision_maker: Optional[str] = None
    payments: List[PaymentCreate] = Field(default_factory=list)

    @field_validator("client", "industry", "next_step", "decision_maker", mode="before")
    @classmethod
    def trim_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class DealUpdate(BaseModel):
    client: Optional[str] = Field(default=None, min_length=1)
    stage: Optional[Stage] = None
    industry: Optional[str] = None
    deal_type: Optional[DealType] = None
    probability: Optional[float] = Field(default=None, ge=0, le=100)
    next_step: Optional[str] = None
    decision_maker: Optional[str] = None

    @field_validator("client", "industry", "next_step", "decision_maker", mode="before")
    @classmethod
    def trim_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    # omitted fields stay unset; an explicit null is rejected
    @field_validator("*")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class PurchaseOrderCreate(BaseModel):
    deal_id: int = Field(gt=0)
    number: str = Field(min_length=1)
    type: PurchaseOrderType
    payment_terms: int = Field(default=30, ge=0)
    payment_ids: List[int] = Field(default_factory=list)

    @field_validator("number", mode="before")
    @classmethod
    def trim_number(cls, v):
        return v.strip() if isinstance(v, str) else v


class PurchaseOrderUpdate(BaseModel):
    number: Optional[str] = Field(default=None, min_length=1)
    type: Optional[PurchaseOrderType] = None
    payment_terms: Optional[int] = Field(default=None, ge=0)
    payment_ids: Optional[List[int]] = None

    @field_validator("number", mode="before")
    @classmethod
    def trim_number(cls, v):
        return v.strip() if isinstance(v, str) else v
