# core/store.py
import json
import threading
from itertools import count
from pathlib import Path
from typing import Dict, Iterable, List, Union

import structlog

from schema.deal_v1 import (
    Deal, DealCreate, DealUpdate, Payment, PaymentCreate, PaymentUpdate,
    PurchaseOrder, PurchaseOrderCreate, PurchaseOrderUpdate,
)

logger = structlog.get_logger(__name__)


class NotFoundError(LookupError):
    def __init__(self, kind: str, id: int):
        super().__init__(f"{kind} {id} not found")
        self.kind = kind
        self.id = id


class InvalidLinkError(ValueError):
    """A purchase order tried to link a payment that belongs to another deal."""


def _payment_from(payload: PaymentCreate, payment_id: int) -> Payment:
    return Payment(id=payment_id, label=payload.label, date=payload.date.isoformat(), amount=payload.amount)


class DealStore:
    """In-memory deal repository.

    Deals own their payments and purchase orders. Every method returns copies,
    so callers never hold references into the store's state.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._deals: Dict[int, Deal] = {}
        self._deal_ids = count(1)
        self._payment_ids = count(1)
        self._po_ids = count(1)

    # --------- seeding ---------
    def load(self, deals: Iterable[Deal]) -> int:
        """Replace the store contents with already-built deals, keeping their ids."""
        with self._lock:
            self._deals = {d.id: d.model_copy(deep=True) for d in deals}
            self._deal_ids = count(max(self._deals, default=0) + 1)
            pay_ids = [p.id for d in self._deals.values() for p in d.payments]
            po_ids = [po.id for d in self._deals.values() for po in d.purchase_orders]
            self._payment_ids = count(max(pay_ids, default=0) + 1)
            self._po_ids = count(max(po_ids, default=0) + 1)
            logger.info("store.loaded", deals=len(self._deals), payments=len(pay_ids))
            return len(self._deals)

    def load_file(self, path: Union[str, Path]) -> int:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return self.load(Deal.model_validate(d) for d in raw)

    # --------- deals ---------
    def list_deals(self) -> List[Deal]:
        with self._lock:
            # newest first
            return [d.model_copy(deep=True) for d in sorted(self._deals.values(), key=lambda d: d.id, reverse=True)]

    def get_deal(self, deal_id: int) -> Deal:
        with self._lock:
            return self._deal(deal_id).model_copy(deep=True)

    def create_deal(self, payload: DealCreate) -> Deal:
        with self._lock:
            deal = Deal(
                id=next(self._deal_ids),
                payments=[_payment_from(p, next(self._payment_ids)) for p in payload.payments],
                **payload.model_dump(exclude={"payments"}),
            )
            self._deals[deal.id] = deal
            logger.info("deal.created", deal_id=deal.id, client=deal.client, payments=len(deal.payments))
            return deal.model_copy(deep=True)

    def update_deal(self, deal_id: int, payload: DealUpdate) -> Deal:
        with self._lock:
            deal = self._deal(deal_id)
            changes = payload.model_dump(exclude_unset=True, exclude_none=True)
            updated = deal.model_copy(update=changes)
            self._deals[deal_id] = updated
            logger.info("deal.updated", deal_id=deal_id, fields=sorted(changes))
            return updated.model_copy(deep=True)

    def delete_deal(self, deal_id: int) -> None:
        with self._lock:
            self._deal(deal_id)
            del self._deals[deal_id]
            logger.info("deal.deleted", deal_id=deal_id)

    # --------- payments ---------
    def add_payment(self, deal_id: int, payload: PaymentCreate) -> Payment:
        with self._lock:
            deal = self._deal(deal_id)
            payment = _payment_from(payload, next(self._payment_ids))
            deal.payments.append(payment)
            logger.info("payment.created", deal_id=deal_id, payment_id=payment.id)
            return payment.model_copy()

    def update_payment(self, payment_id: int, payload: PaymentUpdate) -> Payment:
        with self._lock:
            deal, idx = self._payment(payment_id)
            changes = payload.model_dump(exclude_unset=True, exclude_none=True)
            if "date" in changes:
                changes["date"] = changes["date"].isoformat()
            deal.payments[idx] = deal.payments[idx].model_copy(update=changes)
            logger.info("payment.updated", payment_id=payment_id, fields=sorted(changes))
            return deal.payments[idx].model_copy()

    def delete_payment(self, payment_id: int) -> None:
        with self._lock:
            deal, idx = self._payment(payment_id)
            del deal.payments[idx]
            logger.info("payment.deleted", deal_id=deal.id, payment_id=payment_id)

    def replace_payments(self, deal_id: int, payloads: List[PaymentCreate]) -> List[Payment]:
        """Swap a deal's whole payment schedule in one step. Purchase-order links are dropped."""
        with self._lock:
            deal = self._deal(deal_id)
            deal.payments = [_payment_from(p, next(self._payment_ids)) for p in payloads]
            logger.info("payments.replaced", deal_id=deal_id, payments=len(deal.payments))
            return [p.model_copy() for p in deal.payments]

    # --------- purchase orders ---------
    def create_purchase_order(self, payload: PurchaseOrderCreate) -> PurchaseOrder:
        with self._lock:
            deal = self._deal(payload.deal_id)
            self._check_links(deal, payload.payment_ids)
            po = PurchaseOrder(id=next(self._po_ids), **payload.model_dump(exclude={"payment_ids"}))
            deal.purchase_orders.append(po)
            self._link(deal, po.id, payload.payment_ids)
            logger.info("purchase_order.created", deal_id=deal.id, po_id=po.id, payments=len(payload.payment_ids))
            return po.model_copy()

    def update_purchase_order(self, po_id: int, payload: PurchaseOrderUpdate) -> PurchaseOrder:
        with self._lock:
            deal, idx = self._purchase_order(po_id)
            changes = payload.model_dump(exclude_unset=True, exclude_none=True, exclude={"payment_ids"})
            if payload.payment_ids is not None:
                self._check_links(deal, payload.payment_ids)
                self._unlink(deal, po_id)
                self._link(deal, po_id, payload.payment_ids)
            deal.purchase_orders[idx] = deal.purchase_orders[idx].model_copy(update=changes)
            logger.info("purchase_order.updated", po_id=po_id, fields=sorted(changes))
            return deal.purchase_orders[idx].model_copy()

    def delete_purchase_order(self, po_id: int) -> None:
        with self._lock:
            deal, idx = self._purchase_order(po_id)
            del deal.purchase_orders[idx]
            self._unlink(deal, po_id)
            logger.info("purchase_order.deleted", deal_id=deal.id, po_id=po_id)

    # --------- helpers (caller holds the lock) ---------
    def _deal(self, deal_id: int) -> Deal:
        try:
            return self._deals[deal_id]
        except KeyError:
            raise NotFoundError("Deal", deal_id) from None

    def _payment(self, payment_id: int):
        for deal in self._deals.values():
            for idx, p in enumerate(deal.payments):
                if p.id == payment_id:
                    return deal, idx
        raise NotFoundError("Payment", payment_id)

    def _purchase_order(self, po_id: int):
        for deal in self._deals.values():
            for idx, po in enumerate(deal.purchase_orders):
                if po.id == po_id:
                    return deal, idx
        raise NotFoundError("PurchaseOrder", po_id)

    @staticmethod
    def _check_links(deal: Deal, payment_ids: List[int]) -> None:
        own = {p.id for p in deal.payments}
        foreign = sorted(set(payment_ids) - own)
        if foreign:
            raise InvalidLinkError(f"Payments {foreign} do not belong to deal {deal.id}")

    @staticmethod
    def _link(deal: Deal, po_id: int, payment_ids: List[int]) -> None:
        wanted = set(payment_ids)
        deal.payments = [p.model_copy(update={"purchase_order_id": po_id}) if p.id in wanted else p
                         for p in deal.payments]

    @staticmethod
    def _unlink(deal: Deal, po_id: int) -> None:
        deal.payments = [p.model_copy(update={"purchase_order_id": None}) if p.purchase_order_id == po_id else p
                         for p in deal.payments]
