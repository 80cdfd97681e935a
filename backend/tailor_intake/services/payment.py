from datetime import date
from typing import Any, Callable, Dict, Optional
import logging

from pydantic import BaseModel, Field

from tailor_intake.models.intake import PaymentSummary
from tailor_intake.utils.dates import InvalidDateError, is_before_today, parse_display_date
from tailor_intake.utils.numbers import parse_number

logger = logging.getLogger(__name__)

PAY_NOW = "Pay Now"
PAY_LATER = "Pay Later"
PARTIAL = "Partial"
PAYMENT_MODES = (PAY_NOW, PAY_LATER, PARTIAL)

CASH_PAYMENT_MODES = ("Cash", "UPI", "Card", "Online", "Other")


class PaymentResult(BaseModel):
    summary: PaymentSummary
    payload: Optional[Dict[str, Any]] = None
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.payload is not None and not self.errors


class PaymentReconciler:
    """Discount / pay-now / balance breakdown for manual bills.

    Computation (in this order):
    - discount = max(0, discount_amount or 0)
    - final_payable = max(0, gross - discount)
    - pay_now = max(0, pay_now_amount or 0)
    - remaining = max(0, final_payable - pay_now)

    Validation errors are keyed by the form field they belong to; the first
    error found for a field is kept.
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self.today = today

    def summarize(self, gross_amount: float, discount_amount: Any = None, pay_now_amount: Any = None) -> PaymentSummary:
        gross = max(0.0, float(gross_amount or 0))
        discount = max(0.0, parse_number(discount_amount) or 0.0)
        final_payable = max(0.0, gross - discount)
        pay_now = max(0.0, parse_number(pay_now_amount) or 0.0)
        remaining = max(0.0, final_payable - pay_now)
        return PaymentSummary(
            gross_amount=gross,
            discount=discount,
            final_payable=final_payable,
            pay_now=pay_now,
            remaining=remaining,
        )

    def _add_error(self, errors: Dict[str, str], field: str, message: str) -> None:
        errors.setdefault(field, message)

    def _check_pay_later_date(self, errors: Dict[str, str], pay_later_date: Optional[str]) -> Optional[date]:
        if not pay_later_date or not str(pay_later_date).strip():
            self._add_error(errors, "pay_later_date", "Pay later date is required")
            return None
        try:
            parsed = parse_display_date(pay_later_date)
        except InvalidDateError:
            self._add_error(errors, "pay_later_date", "Enter a valid date (DD/MM/YYYY)")
            return None
        if is_before_today(parsed, self.today()):
            self._add_error(errors, "pay_later_date", "Pay later date cannot be in the past")
            return None
        return parsed

    def validate(
        self,
        summary: PaymentSummary,
        payment_mode: Optional[str],
        pay_later_date: Optional[str] = None,
        cash_payment_mode: Optional[str] = None,
    ) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        mode = (payment_mode or "").strip()
        cash = (cash_payment_mode or "").strip()

        if mode not in PAYMENT_MODES:
            self._add_error(errors, "payment_mode", "Select a payment mode")

        if summary.discount > summary.gross_amount:
            self._add_error(errors, "discount_amount", "Discount cannot exceed the order total")

        if mode == PAY_NOW:
            if summary.pay_now <= 0:
                self._add_error(errors, "pay_now_amount", "Enter the amount paid now")
            elif summary.pay_now > summary.final_payable:
                self._add_error(errors, "pay_now_amount", "Amount paid cannot exceed final payable")
            elif summary.pay_now < summary.final_payable:
                self._add_error(errors, "pay_now_amount", "Pay Now must cover the final payable; choose Partial instead")
            if not cash:
                self._add_error(errors, "cash_payment_mode", "Select how the customer paid")
        elif mode == PARTIAL:
            if summary.pay_now <= 0:
                self._add_error(errors, "pay_now_amount", "Enter the amount paid now")
            elif summary.pay_now >= summary.final_payable:
                self._add_error(errors, "pay_now_amount", "Partial payment must be less than final payable")
            if not cash:
                self._add_error(errors, "cash_payment_mode", "Select how the customer paid")

        if mode in (PAY_LATER, PARTIAL):
            self._check_pay_later_date(errors, pay_later_date)

        return errors

    def reconcile(
        self,
        gross_amount: float,
        discount_amount: Any = None,
        payment_mode: Optional[str] = None,
        pay_now_amount: Any = None,
        pay_later_date: Optional[str] = None,
        cash_payment_mode: Optional[str] = None,
    ) -> PaymentResult:
        summary = self.summarize(gross_amount, discount_amount, pay_now_amount)
        errors = self.validate(summary, payment_mode, pay_later_date, cash_payment_mode)
        if errors:
            logger.debug("Payment validation failed mode=%s errors=%s", payment_mode, errors)
            return PaymentResult(summary=summary, errors=errors)

        mode = payment_mode.strip()
        pay_now = 0.0 if mode == PAY_LATER else summary.pay_now
        remaining = max(0.0, summary.final_payable - pay_now)
        if remaining == 0:
            status = "paid"
        elif mode == PAY_LATER:
            status = "scheduled"
        else:
            status = "partial"

        pay_later_enabled = mode in (PAY_LATER, PARTIAL)
        payload = {
            "payment_status": status,
            "pay_now": pay_now,
            "remaining": remaining,
            "pay_later_enabled": pay_later_enabled,
            "pay_later_amount": remaining if pay_later_enabled else 0.0,
            "pay_later_date": parse_display_date(pay_later_date).isoformat() if pay_later_enabled else None,
            "payment_mode": mode,
            "cash_payment_mode": (cash_payment_mode or "").strip() or None,
            "discount": summary.discount,
            "final_amount": summary.final_payable,
        }
        return PaymentResult(summary=summary, payload=payload)
