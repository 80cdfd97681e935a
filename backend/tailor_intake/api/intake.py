from typing import Any, Dict, Optional, Union
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import select

from tailor_intake.config import HISTORY_LIMIT
from tailor_intake.db.session import get_session
from tailor_intake.models.order import Order
from tailor_intake.services.matcher import MeasurementMatcher, read_past_orders
from tailor_intake.services.payment import PaymentReconciler
from tailor_intake.services.validation import normalize_phone

logger = logging.getLogger(__name__)
router = APIRouter()


class PaymentSummaryRequest(BaseModel):
    gross_amount: float = Field(ge=0)
    discount_amount: Optional[Union[float, str]] = None
    payment_mode: Optional[str] = None
    pay_now_amount: Optional[Union[float, str]] = None
    pay_later_date: Optional[str] = None
    cash_payment_mode: Optional[str] = None


class MeasurementMatchRequest(BaseModel):
    shop_id: str
    customer_phone: str
    garment_type: str
    prefer_legacy: bool = True


@router.post("/payment-summary")
async def payment_summary(req: PaymentSummaryRequest) -> Dict[str, Any]:
    """Reconcile a manual bill; returns the summary plus either a payload or field errors."""
    result = PaymentReconciler().reconcile(
        req.gross_amount,
        discount_amount=req.discount_amount,
        payment_mode=req.payment_mode,
        pay_now_amount=req.pay_now_amount,
        pay_later_date=req.pay_later_date,
        cash_payment_mode=req.cash_payment_mode,
    )
    return result.model_dump()


@router.post("/measurement-match")
def measurement_match(req: MeasurementMatchRequest) -> Dict[str, Any]:
    phone = normalize_phone(req.customer_phone)
    if not phone:
        raise HTTPException(status_code=400, detail="customer_phone is required")

    session = get_session()
    try:
        rows = session.exec(
            select(Order)
            .where(Order.shop_id == req.shop_id, Order.customer_phone == phone)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(HISTORY_LIMIT)
        ).all()
        history = read_past_orders([o.model_dump() for o in rows])
    finally:
        session.close()

    match = MeasurementMatcher(prefer_legacy=req.prefer_legacy).find(req.garment_type, history)
    logger.info("Measurement match shop=%s garment=%r found=%s", req.shop_id, req.garment_type, match is not None)
    return {"match": match.model_dump() if match else None, "orders_scanned": len(history)}
