from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session, func, select

from tailor_intake.db.session import get_session
from tailor_intake.models.order import CANCELLED_STATUS, CREATED_STATUS, DRAFT_STATUS, ORDER_STATUSES, Order
from tailor_intake.services.invoice import issue_invoice
from tailor_intake.utils.dates import InvalidDateError, parse_display_date

logger = logging.getLogger(__name__)
router = APIRouter()


class OrderItemPayload(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    garment_type: str
    quantity: int = Field(default=1, ge=1)
    price_per_item: float = Field(default=0.0, ge=0)
    # accepted for compatibility; always recomputed from price and quantity
    total_price: Optional[float] = None
    measurement_preset_id: Optional[str] = None
    preset_name: Optional[str] = None
    measurements: Optional[Dict[str, str]] = None
    extra_measurements: Optional[Dict[str, str]] = None
    notes: Optional[str] = None


class OrderPayload(BaseModel):
    shop_id: str
    status: str = CREATED_STATUS
    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=1)
    customer_email: Optional[str] = None
    due_date: Optional[str] = None
    notes: Optional[str] = None
    is_manual_bill: bool = False

    order_items: List[OrderItemPayload] = Field(default_factory=list)
    # legacy single-garment orders
    order_type: Optional[str] = None
    measurements: Optional[Dict[str, str]] = None
    price: Optional[float] = Field(default=None, ge=0)

    advance_payment: float = Field(default=0.0, ge=0)
    discount: Optional[float] = Field(default=None, ge=0)
    final_amount: Optional[float] = Field(default=None, ge=0)
    payment_mode: Optional[str] = None
    cash_payment_mode: Optional[str] = None
    payment_status: Optional[str] = None
    pay_now: Optional[float] = Field(default=None, ge=0)
    remaining: Optional[float] = Field(default=None, ge=0)
    pay_later_enabled: Optional[bool] = None
    pay_later_amount: Optional[float] = Field(default=None, ge=0)
    pay_later_date: Optional[str] = None

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: str) -> str:
        if v not in ORDER_STATUSES:
            raise ValueError(f"status must be one of {', '.join(ORDER_STATUSES)}")
        return v

    @field_validator("due_date", "pay_later_date")
    @classmethod
    def _iso_date(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        try:
            return parse_display_date(v).isoformat()
        except InvalidDateError as e:
            raise ValueError(str(e)) from e


def serialize_order(order: Order) -> Dict[str, Any]:
    return order.model_dump(mode="json")


def _item_row(item: OrderItemPayload) -> Dict[str, Any]:
    row = item.model_dump(exclude_none=True)
    row["total_price"] = item.price_per_item * item.quantity
    return row


def _apply_payload(order: Order, payload: OrderPayload) -> None:
    items = [_item_row(i) for i in payload.order_items]
    data = payload.model_dump(exclude={"order_items", "price"})
    for key, value in data.items():
        setattr(order, key, value)
    if items:
        order.order_items = items
        order.price = sum(i["total_price"] for i in items)
    else:
        order.order_items = None
        order.price = payload.price or 0.0

    if order.status != DRAFT_STATUS and order.advance_payment > (order.final_amount if order.final_amount is not None else order.price):
        raise HTTPException(status_code=400, detail="Advance payment cannot be greater than total amount.")
    order.updated_at = datetime.now(timezone.utc)


def _check_transition(current: str, new: str) -> None:
    """Drafts leave Draft only by promotion (or cancellation); orders never go back."""
    if current == new:
        return
    if current == DRAFT_STATUS and new != CANCELLED_STATUS:
        raise HTTPException(status_code=400, detail=f"Invalid status transition from {current} to {new}. Promote the draft instead.")
    if current != DRAFT_STATUS and new == DRAFT_STATUS:
        raise HTTPException(status_code=400, detail=f"Invalid status transition from {current} to {new}.")


def _create_order(session: Session, payload: OrderPayload) -> Tuple[Order, Optional[Dict[str, Any]]]:
    order = Order(shop_id=payload.shop_id, customer_name=payload.customer_name, customer_phone=payload.customer_phone)
    _apply_payload(order, payload)
    session.add(order)
    session.flush()
    invoice = None
    if order.status != DRAFT_STATUS:
        invoice = issue_invoice(session, order)
    return order, invoice


@router.get("/customers/{shop_id}")
def list_customers(shop_id: str):
    """Customers seen in a shop's orders, most recent visit first."""
    session = get_session()
    try:
        rows = session.exec(select(Order).where(Order.shop_id == shop_id).order_by(Order.created_at.desc())).all()
        grouped: Dict[Tuple[str, str, Optional[str]], Dict[str, Any]] = {}
        for o in rows:
            key = (o.customer_name, o.customer_phone, o.customer_email)
            entry = grouped.get(key)
            if entry is None:
                entry = grouped[key] = {
                    "name": o.customer_name,
                    "phone": o.customer_phone,
                    "email": o.customer_email,
                    "orders": 0,
                    "total_spent": 0.0,
                    "last_visit": o.created_at.isoformat(),
                    "first_visit": o.created_at.isoformat(),
                }
            entry["orders"] += 1
            entry["total_spent"] += o.price or 0.0
            entry["first_visit"] = o.created_at.isoformat()
        return list(grouped.values())
    finally:
        session.close()


@router.get("/details/{order_id}")
def get_order(order_id: int):
    session = get_session()
    try:
        order = session.get(Order, order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return {"order": serialize_order(order)}
    finally:
        session.close()


@router.get("/{shop_id}")
def list_orders(
    shop_id: str,
    customer_phone: Optional[str] = None,
    status: Optional[str] = None,
    exclude_status: Optional[str] = None,
    limit: int = Query(20, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Orders for a shop, newest first."""
    session = get_session()
    try:
        query = select(Order).where(Order.shop_id == shop_id)
        if customer_phone:
            query = query.where(Order.customer_phone == customer_phone)
        if status:
            query = query.where(Order.status == status)
        if exclude_status:
            query = query.where(Order.status.not_in([s.strip() for s in exclude_status.split(",") if s.strip()]))

        total = session.exec(select(func.count()).select_from(query.subquery())).one()
        rows = session.exec(query.order_by(Order.created_at.desc(), Order.id.desc()).offset(offset).limit(limit)).all()
        return {"orders": [serialize_order(o) for o in rows], "total": int(total or 0)}
    finally:
        session.close()


@router.post("", status_code=201)
def create_order(payload: OrderPayload):
    session = get_session()
    try:
        order, invoice = _create_order(session, payload)
        session.commit()
        session.refresh(order)
        logger.info("Created order id=%s shop=%s status=%s invoice=%s", order.id, order.shop_id, order.status, order.invoice_number)
        return {"order": serialize_order(order), "invoice": invoice}
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception("Failed to create order: %s", e)
        raise HTTPException(status_code=500, detail="Error creating order")
    finally:
        session.close()


@router.put("/{order_id}")
def update_order(order_id: int, payload: OrderPayload):
    session = get_session()
    try:
        order = session.get(Order, order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        _check_transition(order.status, payload.status)
        _apply_payload(order, payload)
        session.add(order)
        session.commit()
        session.refresh(order)
        logger.info("Updated order id=%s status=%s", order.id, order.status)
        return {"order": serialize_order(order)}
    except HTTPException:
        session.rollback()
        raise
    finally:
        session.close()


@router.delete("/{order_id}")
def delete_order(order_id: int):
    session = get_session()
    try:
        order = session.get(Order, order_id)
        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        session.delete(order)
        session.commit()
        logger.info("Deleted order id=%s", order_id)
        return {"ok": True, "order_id": order_id}
    finally:
        session.close()


@router.post("/drafts/{draft_id}/promote", status_code=201)
def promote_draft(draft_id: int, payload: OrderPayload):
    """Turn a draft into a finalized order: create + delete in one transaction."""
    if payload.status == DRAFT_STATUS:
        raise HTTPException(status_code=400, detail="A promoted order cannot have Draft status")
    session = get_session()
    try:
        draft = session.get(Order, draft_id)
        if draft is None or draft.status != DRAFT_STATUS:
            raise HTTPException(status_code=404, detail="Draft not found")
        order, invoice = _create_order(session, payload)
        session.delete(draft)
        session.commit()
        session.refresh(order)
        logger.info("Promoted draft id=%s to order id=%s invoice=%s", draft_id, order.id, order.invoice_number)
        return {"order": serialize_order(order), "invoice": invoice, "promoted_from": draft_id}
    except HTTPException:
        session.rollback()
        raise
    except Exception as e:
        session.rollback()
        logger.exception("Failed to promote draft id=%s: %s", draft_id, e)
        raise HTTPException(status_code=500, detail="Error creating order")
    finally:
        session.close()
