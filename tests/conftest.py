from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from tailor_intake.db import session as db_session
from tailor_intake.main import app
from tailor_intake.models.intake import Preset, PresetField
from tailor_intake.models.order import DRAFT_STATUS
from tailor_intake.services.order_store import OrderStoreError

TODAY = date(2026, 10, 19)


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    SQLModel.metadata.create_all(eng)
    previous = db_session._engine
    db_session.set_engine(eng)
    yield eng
    db_session.set_engine(previous)
    eng.dispose()


@pytest.fixture
def client(engine):
    return TestClient(app)


class FakeStore:
    """In-memory order store with switchable failures."""

    def __init__(self, presets=None, history=None, customers=None):
        self.presets: List[Preset] = list(presets or [])
        self.history: List[Dict[str, Any]] = list(history or [])
        self.customers = list(customers or [])
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.created: List[Dict[str, Any]] = []
        self.updated: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.order_queries: List[Dict[str, Any]] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_delete = False
        self._next_id = 100

    def get_presets(self, shop_id: str) -> List[Preset]:
        return list(self.presets)

    def get_customers(self, shop_id: str):
        return list(self.customers)

    def get_orders(self, shop_id: str, customer_phone: Optional[str] = None, limit: Optional[int] = None):
        self.order_queries.append({"shop_id": shop_id, "customer_phone": customer_phone, "limit": limit})
        return list(self.history)

    def get_draft(self, draft_id):
        order = self.orders.get(str(draft_id))
        if order is None:
            raise OrderStoreError("GET failed: Order not found", 404, "Order not found")
        return dict(order)

    def create_order(self, payload):
        if self.fail_create:
            raise OrderStoreError("POST /orders failed", 500, None)
        self._next_id += 1
        order = {**payload, "id": self._next_id}
        self.orders[str(self._next_id)] = order
        self.created.append(payload)
        invoice = None if payload.get("status") == DRAFT_STATUS else {"invoice_number": f"INV-{self._next_id:04d}"}
        return {"order": order, "invoice": invoice}

    def update_order(self, order_id, payload):
        if self.fail_update:
            raise OrderStoreError("PUT failed", 500, None)
        self.updated.append(payload)
        self.orders[str(order_id)] = {**payload, "id": int(order_id)}
        return self.orders[str(order_id)]

    def delete_order(self, order_id):
        if self.fail_delete:
            raise OrderStoreError("DELETE failed", 500, None)
        self.deleted.append(str(order_id))
        self.orders.pop(str(order_id), None)


class PromotingStore(FakeStore):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.promoted: List[str] = []

    def promote_draft(self, draft_id, payload):
        if str(draft_id) not in self.orders:
            raise OrderStoreError("promote failed", 404, "Draft not found")
        self.orders.pop(str(draft_id))
        self.promoted.append(str(draft_id))
        resp = self.create_order(payload)
        self.created.pop()
        return resp


@pytest.fixture
def shirt_preset() -> Preset:
    return Preset(
        id="7",
        name="Shirt",
        base_price=800,
        fields=[
            PresetField(name="chest", label="Chest", required=True),
            PresetField(name="length", label="Length"),
            PresetField(name="sleeve", label="Sleeve", unit="cm"),
        ],
    )


@pytest.fixture
def store(shirt_preset) -> FakeStore:
    return FakeStore(presets=[shirt_preset])
