"""Tests for core.store.DealStore -- in-memory deals, payments and purchase orders."""

import json
from datetime import date

import pytest
from pydantic import ValidationError

from core.store import DealStore, InvalidLinkError, NotFoundError
from factories import make_deal, make_payment
from schema.deal_v1 import (
    DealCreate,
    DealUpdate,
    PaymentCreate,
    PaymentUpdate,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
)


@pytest.fixture
def store() -> DealStore:
    return DealStore()


@pytest.fixture
def deal(store):
    return store.create_deal(DealCreate(
        client="  Acme  ",
        deal_type="SAAS",
        payments=[
            PaymentCreate(label="Kickoff", date=date(2025, 1, 15), amount=1000),
            PaymentCreate(label="Delivery", date=date(2025, 3, 1), amount=2000),
        ],
    ))


class TestPayloadValidation:
    def test_client_required(self) -> None:
        with pytest.raises(ValidationError):
            DealCreate(client="   ")

    def test_probability_bounds(self) -> None:
        with pytest.raises(ValidationError):
            DealCreate(client="Acme", probability=101)

    def test_negative_payment_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PaymentCreate(label="x", date=date(2025, 1, 1), amount=-1)

    def test_payment_date_must_be_real(self) -> None:
        with pytest.raises(ValidationError):
            PaymentCreate(label="x", date="not-a-date", amount=1)

    def test_po_type(self) -> None:
        with pytest.raises(ValidationError):
            PurchaseOrderCreate(deal_id=1, number="PO-1", type="Receipt")


class TestDeals:
    def test_create_defaults(self, deal) -> None:
        assert deal.id == 1
        assert deal.client == "Acme"
        assert deal.stage == "PROSPECCAO"
        assert deal.probability == 50
        assert [p.date for p in deal.payments] == ["2025-01-15", "2025-03-01"]
        assert [p.id for p in deal.payments] == [1, 2]

    def test_list_newest_first(self, store, deal) -> None:
        second = store.create_deal(DealCreate(client="Globex"))
        assert [d.id for d in store.list_deals()] == [second.id, deal.id]

    def test_returned_deals_are_copies(self, store, deal) -> None:
        deal.payments.clear()
        assert len(store.get_deal(deal.id).payments) == 2

    def test_partial_update(self, store, deal) -> None:
        updated = store.update_deal(deal.id, DealUpdate(stage="FECHADO", next_step=" Sign "))
        assert updated.stage == "FECHADO"
        assert updated.next_step == "Sign"
        assert updated.client == "Acme"
        assert updated.deal_type == "SAAS"

    @pytest.mark.parametrize("field", [
        "client", "stage", "industry", "deal_type", "probability", "next_step", "decision_maker",
    ])
    def test_update_rejects_null(self, field) -> None:
        with pytest.raises(ValidationError):
            DealUpdate(**{field: None})

    def test_update_ignores_null_that_bypassed_validation(self, store, deal) -> None:
        store.update_deal(deal.id, DealUpdate(industry="Retail", probability=70))
        payload = DealUpdate.model_construct(probability=None, industry=None)
        updated = store.update_deal(deal.id, payload)
        assert updated.probability == 70
        assert updated.industry == "Retail"

    def test_delete(self, store, deal) -> None:
        store.delete_deal(deal.id)
        assert store.list_deals() == []
        with pytest.raises(NotFoundError):
            store.get_deal(deal.id)

    def test_unknown_deal(self, store) -> None:
        with pytest.raises(NotFoundError) as exc:
            store.update_deal(99, DealUpdate(stage="CONVERSA"))
        assert exc.value.kind == "Deal"
        assert exc.value.id == 99


class TestPayments:
    def test_add(self, store, deal) -> None:
        payment = store.add_payment(deal.id, PaymentCreate(label="Final", date=date(2025, 6, 1), amount=500))
        assert payment.id == 3
        assert [p.label for p in store.get_deal(deal.id).payments] == ["Kickoff", "Delivery", "Final"]

    def test_update(self, store, deal) -> None:
        pid = deal.payments[0].id
        updated = store.update_payment(pid, PaymentUpdate(date=date(2025, 2, 1), amount=1200))
        assert updated.date == "2025-02-01"
        assert updated.amount == 1200
        assert updated.label == "Kickoff"

    def test_delete(self, store, deal) -> None:
        store.delete_payment(deal.payments[0].id)
        assert [p.label for p in store.get_deal(deal.id).payments] == ["Delivery"]
        with pytest.raises(NotFoundError):
            store.delete_payment(deal.payments[0].id)

    def test_replace_all(self, store, deal) -> None:
        po = store.create_purchase_order(PurchaseOrderCreate(
            deal_id=deal.id, number="PO-1", type="NF", payment_ids=[deal.payments[0].id]))
        replaced = store.replace_payments(deal.id, [
            PaymentCreate(label="Single", date=date(2025, 9, 1), amount=3000),
        ])
        payments = store.get_deal(deal.id).payments
        assert [p.label for p in payments] == ["Single"]
        assert replaced[0].id not in {p.id for p in deal.payments}
        assert all(p.purchase_order_id != po.id for p in payments)


class TestPurchaseOrders:
    def test_create_links_payments(self, store, deal) -> None:
        first = deal.payments[0].id
        po = store.create_purchase_order(PurchaseOrderCreate(
            deal_id=deal.id, number=" PO-77 ", type="Invoice", payment_ids=[first]))
        assert po.number == "PO-77"
        assert po.payment_terms == 30
        current = store.get_deal(deal.id)
        assert [p.purchase_order_id for p in current.payments] == [po.id, None]
        assert [o.id for o in current.purchase_orders] == [po.id]

    def test_update_replaces_link_set(self, store, deal) -> None:
        first, second = (p.id for p in deal.payments)
        po = store.create_purchase_order(PurchaseOrderCreate(
            deal_id=deal.id, number="PO-1", type="NF", payment_ids=[first]))
        updated = store.update_purchase_order(po.id, PurchaseOrderUpdate(payment_ids=[second], payment_terms=45))
        assert updated.payment_terms == 45
        assert updated.number == "PO-1"
        assert [p.purchase_order_id for p in store.get_deal(deal.id).payments] == [None, po.id]

    def test_update_without_ids_keeps_links(self, store, deal) -> None:
        first = deal.payments[0].id
        po = store.create_purchase_order(PurchaseOrderCreate(
            deal_id=deal.id, number="PO-1", type="NF", payment_ids=[first]))
        store.update_purchase_order(po.id, PurchaseOrderUpdate(number="PO-2"))
        assert store.get_deal(deal.id).payments[0].purchase_order_id == po.id

    def test_delete_unlinks(self, store, deal) -> None:
        po = store.create_purchase_order(PurchaseOrderCreate(
            deal_id=deal.id, number="PO-1", type="NF", payment_ids=[p.id for p in deal.payments]))
        store.delete_purchase_order(po.id)
        current = store.get_deal(deal.id)
        assert current.purchase_orders == []
        assert all(p.purchase_order_id is None for p in current.payments)

    def test_foreign_payment_rejected(self, store, deal) -> None:
        other = store.create_deal(DealCreate(client="Globex", payments=[
            PaymentCreate(label="x", date=date(2025, 1, 1), amount=1)]))
        with pytest.raises(InvalidLinkError):
            store.create_purchase_order(PurchaseOrderCreate(
                deal_id=deal.id, number="PO-1", type="NF", payment_ids=[other.payments[0].id]))
        assert store.get_deal(deal.id).purchase_orders == []

    def test_unknown_purchase_order(self, store) -> None:
        with pytest.raises(NotFoundError):
            store.delete_purchase_order(5)


class TestLoad:
    def test_load_keeps_ids_and_continues_counters(self, store) -> None:
        store.load([make_deal("Seeded", id=10, payments=[make_payment(1, "2025-01-01", id=40)])])
        created = store.create_deal(DealCreate(client="New", payments=[
            PaymentCreate(label="x", date=date(2025, 1, 1), amount=1)]))
        assert created.id == 11
        assert created.payments[0].id == 41

    def test_load_file(self, store, tmp_path) -> None:
        path = tmp_path / "deals.json"
        path.write_text(json.dumps([
            {"id": 3, "client": "Acme", "stage": "FECHADO",
             "payments": [{"id": 1, "label": "x", "date": "2025-01-01", "amount": 10}]},
        ]))
        assert store.load_file(path) == 1
        assert store.get_deal(3).stage == "FECHADO"
