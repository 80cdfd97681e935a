from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import Column, JSON
from sqlmodel import SQLModel, Field

DRAFT_STATUS = "Draft"
CREATED_STATUS = "Order Created"
CANCELLED_STATUS = "Cancelled"
ORDER_STATUSES = (
    DRAFT_STATUS,
    CREATED_STATUS,
    "Cutting Completed",
    "Order Completed",
    "Delivered",
    CANCELLED_STATUS,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    shop_id: str = Field(index=True)
    status: str = Field(default=CREATED_STATUS, index=True)

    customer_name: str
    customer_phone: str = Field(index=True)
    customer_email: Optional[str] = None

    # ISO YYYY-MM-DD; absent for manual bills
    due_date: Optional[str] = None
    notes: Optional[str] = None
    is_manual_bill: bool = False

    # multi-item shape
    order_items: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    # legacy single-measurement shape
    order_type: Optional[str] = None
    measurements: Optional[Dict[str, str]] = Field(default=None, sa_column=Column(JSON))

    price: float = 0.0
    advance_payment: float = 0.0
    discount: Optional[float] = None
    final_amount: Optional[float] = None
    payment_mode: Optional[str] = None
    cash_payment_mode: Optional[str] = None
    payment_status: Optional[str] = None
    pay_now: Optional[float] = None
    remaining: Optional[float] = None
    pay_later_enabled: Optional[bool] = None
    pay_later_amount: Optional[float] = None
    pay_later_date: Optional[str] = None

    invoice_number: Optional[str] = None
    created_at: datetime = Field(default_factory=_now, index=True)
    updated_at: datetime = Field(default_factory=_now)


class InvoiceCounter(SQLModel, table=True):
    key: str = Field(primary_key=True)
    seq: int = 0
