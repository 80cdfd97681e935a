from typing import Dict, Optional
import logging
import re

from pydantic import BaseModel, Field

from tailor_intake.models.intake import OrderForm, Preset
from tailor_intake.services.payment import PAY_LATER, PaymentReconciler, PaymentResult
from tailor_intake.utils.dates import InvalidDateError, parse_display_date
from tailor_intake.utils.numbers import parse_number

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^[0-9]{10,15}$")
WHITESPACE_RE = re.compile(r"\s+")


def normalize_phone(phone: Optional[str]) -> str:
    return WHITESPACE_RE.sub("", phone or "")


class ValidationOutcome(BaseModel):
    error: Optional[str] = None
    field: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    payment: Optional[PaymentResult] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class OrderValidator:
    """Final-submit gate for an order form.

    Checks run in this order and stop at the first failure:
    - customer name present
    - phone present and 10-15 digits once whitespace is removed
    - measurement orders: due date present and parseable
    - at least one line item
    - manual bills: payment reconciliation passes
    - measurement orders: advance payment > 0 unless paying later, and not above the total
    - every item has a garment type and a price > 0
    - measurement orders: required preset fields are filled
    """

    def __init__(self, reconciler: Optional[PaymentReconciler] = None):
        self.reconciler = reconciler or PaymentReconciler()

    def _fail(self, message: str, field: Optional[str] = None, **extra) -> ValidationOutcome:
        logger.debug("Order validation failed field=%s: %s", field, message)
        return ValidationOutcome(error=message, field=field, **extra)

    def validate(self, form: OrderForm, presets: Optional[Dict[str, Preset]] = None) -> ValidationOutcome:
        presets = presets or {}
        manual = form.is_manual_bill

        if not form.customer_name.strip():
            return self._fail("Customer name is required", "customer_name")

        phone = normalize_phone(form.customer_phone)
        if not phone:
            return self._fail("Mobile number is required", "customer_phone")
        if not PHONE_RE.match(phone):
            return self._fail("Please enter a valid mobile number (10-15 digits)", "customer_phone")

        if not manual:
            if not form.due_date.strip():
                return self._fail("Due date is required", "due_date")
            try:
                parse_display_date(form.due_date)
            except InvalidDateError:
                return self._fail("Due date must be a valid date (DD/MM/YYYY)", "due_date")

        if not form.items:
            return self._fail("You must have at least one item", "items")

        gross = form.gross_total
        payment = None
        if manual:
            payment = self.reconciler.reconcile(
                gross,
                discount_amount=form.discount_amount,
                payment_mode=form.payment_mode,
                pay_now_amount=form.pay_now_amount,
                pay_later_date=form.pay_later_date,
                cash_payment_mode=form.cash_payment_mode,
            )
            if not payment.ok:
                first = next(iter(payment.errors))
                return self._fail(payment.errors[first], first, field_errors=payment.errors, payment=payment)
        elif form.payment_mode.strip() != PAY_LATER:
            advance = parse_number(form.advance_payment)
            if advance is None or advance <= 0:
                return self._fail("Advance payment is required", "advance_payment")
            if advance > gross:
                return self._fail("Advance payment cannot be greater than total amount", "advance_payment")

        for i, item in enumerate(form.items, start=1):
            if not item.garment_type.strip():
                return self._fail(f"Item {i}: Please enter a garment type", "items")
            if not item.price_per_item or item.price_per_item <= 0:
                return self._fail(f"Item {i}: Please enter a valid price", "items")

        if not manual:
            for i, item in enumerate(form.items, start=1):
                preset = presets.get(item.selected_preset_id) if item.selected_preset_id else None
                if preset is None:
                    continue
                for f in preset.fields:
                    if f.required and not (item.measurements.get(f.name) or "").strip():
                        return self._fail(f"Item {i}: {f.display_label} is required", "items")

        return ValidationOutcome(payment=payment)
