from typing import Any, Dict
import logging

from sqlmodel import Session

from tailor_intake.config import INVOICE_PREFIX
from tailor_intake.models.order import InvoiceCounter, Order

logger = logging.getLogger(__name__)


def next_invoice_number(session: Session, shop_id: str, prefix: str = INVOICE_PREFIX) -> str:
    """Bump the shop's invoice counter inside the caller's transaction."""
    key = f"invoice:{shop_id}"
    counter = session.get(InvoiceCounter, key)
    if counter is None:
        counter = InvoiceCounter(key=key, seq=0)
    counter.seq += 1
    session.add(counter)
    return f"{prefix}-{counter.seq:04d}"


def issue_invoice(session: Session, order: Order) -> Dict[str, Any]:
    """Number a freshly created order and return its invoice summary."""
    order.invoice_number = next_invoice_number(session, order.shop_id)
    session.add(order)

    total = float(order.final_amount if order.final_amount is not None else order.price or 0)
    advance = float(order.advance_payment or 0)
    invoice = {
        "invoice_number": order.invoice_number,
        "total_amount": total,
        "advance_amount": advance,
        "due_amount": max(total - advance, 0.0),
        "payment_status": order.payment_status or ("partial" if advance > 0 else "pending"),
    }
    logger.info("Issued invoice %s for shop=%s", order.invoice_number, order.shop_id)
    return invoice
