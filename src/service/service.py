# FastAPI app

from typing import List, Literal, Optional, Union

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from core.logging_config import configure_logging
from core.projection import build_forecast
from core.settings import settings
from core.store import DealStore, InvalidLinkError, NotFoundError
from schema.deal_v1 import (
    Deal, DealCreate, DealType, DealUpdate, Payment, PaymentCreate, PaymentUpdate,
    PurchaseOrder, PurchaseOrderCreate, PurchaseOrderUpdate,
)
from schema.forecast_spec_v1 import ForecastSpec, PeriodMode, ValueMode
from schema.forecast_v1 import ForecastResult

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Deal pipeline forecast")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = DealStore()
if settings.SEED_FILE:
    store.load_file(settings.SEED_FILE)


def get_store() -> DealStore:
    return store


def _not_found(e: NotFoundError):
    logger.info("api.not_found", kind=e.kind, id=e.id)
    return HTTPException(status_code=404, detail=str(e))


@app.get("/")
def read_root():
    return {"message": "Welcome to the deal pipeline forecast API"}


@app.get("/health")
def health():
    return {"status": "ok"}


# --------- Deals ---------
@app.get("/deals", response_model=List[Deal])
def list_deals(db: DealStore = Depends(get_store)):
    return db.list_deals()


@app.post("/deals", response_model=Deal, status_code=201)
def create_deal(payload: DealCreate, db: DealStore = Depends(get_store)):
    return db.create_deal(payload)


@app.patch("/deals/{deal_id}", response_model=Deal)
def update_deal(deal_id: int, payload: DealUpdate, db: DealStore = Depends(get_store)):
    try:
        return db.update_deal(deal_id, payload)
    except NotFoundError as e:
        raise _not_found(e)


@app.delete("/deals/{deal_id}", status_code=204)
def delete_deal(deal_id: int, db: DealStore = Depends(get_store)):
    try:
        db.delete_deal(deal_id)
    except NotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


# --------- Payments ---------
@app.post("/deals/{deal_id}/payments", response_model=Payment, status_code=201)
def add_payment(deal_id: int, payload: PaymentCreate, db: DealStore = Depends(get_store)):
    try:
        return db.add_payment(deal_id, payload)
    except NotFoundError as e:
        raise _not_found(e)


@app.put("/deals/{deal_id}/payments", status_code=204)
def replace_payments(deal_id: int, payload: List[PaymentCreate], db: DealStore = Depends(get_store)):
    try:
        db.replace_payments(deal_id, payload)
    except NotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


@app.patch("/payments/{payment_id}", response_model=Payment)
def update_payment(payment_id: int, payload: PaymentUpdate, db: DealStore = Depends(get_store)):
    try:
        return db.update_payment(payment_id, payload)
    except NotFoundError as e:
        raise _not_found(e)


@app.delete("/payments/{payment_id}", status_code=204)
def delete_payment(payment_id: int, db: DealStore = Depends(get_store)):
    try:
        db.delete_payment(payment_id)
    except NotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


# --------- Purchase orders ---------
@app.post("/purchase-orders", response_model=PurchaseOrder, status_code=201)
def create_purchase_order(payload: PurchaseOrderCreate, db: DealStore = Depends(get_store)):
    try:
        return db.create_purchase_order(payload)
    except NotFoundError as e:
        raise _not_found(e)
    except InvalidLinkError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.patch("/purchase-orders/{po_id}", response_model=PurchaseOrder)
def update_purchase_order(po_id: int, payload: PurchaseOrderUpdate, db: DealStore = Depends(get_store)):
    try:
        return db.update_purchase_order(po_id, payload)
    except NotFoundError as e:
        raise _not_found(e)
    except InvalidLinkError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.delete("/purchase-orders/{po_id}", status_code=204)
def delete_purchase_order(po_id: int, db: DealStore = Depends(get_store)):
    try:
        db.delete_purchase_order(po_id)
    except NotFoundError as e:
        raise _not_found(e)
    return Response(status_code=204)


# --------- Forecast ---------
@app.get("/forecast", response_model=ForecastResult)
def forecast(
    period_mode: PeriodMode = "custom",
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = None,
    year: Optional[int] = None,
    semester: int = Query(default=1, ge=1, le=2),
    deal_type: Union[Literal["ALL"], DealType] = "ALL",
    only_po: bool = Query(default=False, alias="onlyPO"),
    value_mode: ValueMode = "gross",
    db: DealStore = Depends(get_store),
):
    try:
        spec = ForecastSpec(
            period_mode=period_mode,
            custom_from=from_,
            custom_to=to,
            year=year,
            semester=semester,
            deal_type=deal_type,
            only_with_purchase_order=only_po,
            value_mode=value_mode,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
    return build_forecast(db.list_deals(), spec)
