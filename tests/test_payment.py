import pytest

from tailor_intake.services.payment import PARTIAL, PAY_LATER, PAY_NOW, PaymentReconciler

from conftest import TODAY


@pytest.fixture
def reconciler():
    return PaymentReconciler(today=lambda: TODAY)


def test_pay_now_in_full_is_paid(reconciler):
    result = reconciler.reconcile(1000, discount_amount="100", payment_mode=PAY_NOW, pay_now_amount="900", cash_payment_mode="UPI")
    assert result.ok
    assert result.summary.final_payable == 900
    assert result.payload["remaining"] == 0
    assert result.payload["payment_status"] == "paid"
    assert result.payload["pay_later_enabled"] is False
    assert result.payload["pay_later_date"] is None
    assert result.payload["final_amount"] == 900


def test_partial_payment_leaves_balance(reconciler):
    result = reconciler.reconcile(
        1000, discount_amount="0", payment_mode=PARTIAL, pay_now_amount="400",
        pay_later_date="25/10/2026", cash_payment_mode="Cash",
    )
    assert result.ok
    assert result.summary.final_payable == 1000
    assert result.payload["remaining"] == 600
    assert result.payload["payment_status"] == "partial"
    assert result.payload["pay_later_amount"] == 600
    assert result.payload["pay_later_date"] == "2026-10-25"


def test_partial_requires_pay_later_date(reconciler):
    result = reconciler.reconcile(1000, payment_mode=PARTIAL, pay_now_amount="400", cash_payment_mode="Cash")
    assert not result.ok
    assert result.payload is None
    assert "pay_later_date" in result.errors


def test_partial_equal_to_final_payable_is_rejected(reconciler):
    result = reconciler.reconcile(500, payment_mode=PARTIAL, pay_now_amount="500", pay_later_date="25/10/2026", cash_payment_mode="Cash")
    assert result.errors == {"pay_now_amount": "Partial payment must be less than final payable"}


def test_partial_reports_every_offending_field(reconciler):
    result = reconciler.reconcile(500, payment_mode=PARTIAL, pay_now_amount="")
    assert set(result.errors) == {"pay_now_amount", "cash_payment_mode", "pay_later_date"}


@pytest.mark.parametrize("gross,discount", [(0, 0), (1000, 0), (1000, 250), (1000, 1000), (99.5, 0.5)])
def test_final_payable_is_gross_minus_discount(reconciler, gross, discount):
    summary = reconciler.summarize(gross, discount)
    assert summary.final_payable == gross - discount
    assert summary.final_payable >= 0


def test_negative_and_junk_inputs_clamp_to_zero(reconciler):
    summary = reconciler.summarize(300, discount_amount="-50", pay_now_amount="abc")
    assert summary.discount == 0
    assert summary.pay_now == 0
    assert summary.final_payable == 300
    assert summary.remaining == 300


def test_discount_above_gross_is_rejected(reconciler):
    result = reconciler.reconcile(100, discount_amount="150", payment_mode=PAY_LATER, pay_later_date="20/10/2026")
    assert result.summary.final_payable == 0
    assert result.errors["discount_amount"] == "Discount cannot exceed the order total"


def test_payment_mode_is_required(reconciler):
    result = reconciler.reconcile(100, payment_mode="")
    assert result.errors["payment_mode"] == "Select a payment mode"


def test_pay_now_rules(reconciler):
    over = reconciler.reconcile(900, payment_mode=PAY_NOW, pay_now_amount="950", cash_payment_mode="Card")
    assert over.errors["pay_now_amount"] == "Amount paid cannot exceed final payable"

    short = reconciler.reconcile(900, payment_mode=PAY_NOW, pay_now_amount="500", cash_payment_mode="Card")
    assert "pay_now_amount" in short.errors

    no_cash = reconciler.reconcile(900, payment_mode=PAY_NOW, pay_now_amount="900")
    assert no_cash.errors == {"cash_payment_mode": "Select how the customer paid"}


def test_pay_later_forces_pay_now_to_zero(reconciler):
    result = reconciler.reconcile(800, payment_mode=PAY_LATER, pay_now_amount="300", pay_later_date="01/11/2026")
    assert result.ok
    assert result.payload["pay_now"] == 0
    assert result.payload["remaining"] == 800
    assert result.payload["payment_status"] == "scheduled"
    assert result.payload["pay_later_enabled"] is True


def test_pay_later_date_today_accepted_yesterday_rejected(reconciler):
    today = reconciler.reconcile(800, payment_mode=PAY_LATER, pay_later_date="19/10/2026")
    assert today.ok

    yesterday = reconciler.reconcile(800, payment_mode=PAY_LATER, pay_later_date="18/10/2026")
    assert yesterday.errors == {"pay_later_date": "Pay later date cannot be in the past"}


def test_unparsable_pay_later_date_is_rejected(reconciler):
    result = reconciler.reconcile(800, payment_mode=PAY_LATER, pay_later_date="31/02/2026")
    assert result.errors == {"pay_later_date": "Enter a valid date (DD/MM/YYYY)"}
