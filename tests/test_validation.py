import pytest

from tailor_intake.models.intake import LineItem, OrderForm
from tailor_intake.services.payment import PaymentReconciler
from tailor_intake.services.validation import OrderValidator

from conftest import TODAY


@pytest.fixture
def validator():
    return OrderValidator(PaymentReconciler(today=lambda: TODAY))


def make_form(**overrides) -> OrderForm:
    data = dict(
        customer_name="Asha Rao",
        customer_phone="9876543210",
        due_date="25/12/2026",
        advance_payment="200",
        items=[LineItem(garment_type="Shirt", quantity=2, price_per_item=500)],
    )
    data.update(overrides)
    return OrderForm(**data)


def test_valid_measurement_order_passes(validator):
    outcome = validator.validate(make_form())
    assert outcome.ok
    assert outcome.payment is None


def test_name_is_checked_before_phone(validator):
    outcome = validator.validate(make_form(customer_name=" ", customer_phone=""))
    assert outcome.error == "Customer name is required"
    assert outcome.field == "customer_name"


@pytest.mark.parametrize("phone,ok", [
    ("98765 43210", True),
    ("919876543210", True),
    ("123456789012345", True),
    ("12345", False),
    ("1234567890123456", False),
    ("98765-43210", False),
    ("+919876543210", False),
])
def test_phone_format(validator, phone, ok):
    outcome = validator.validate(make_form(customer_phone=phone))
    assert outcome.ok is ok
    if not ok:
        assert outcome.field == "customer_phone"


def test_missing_phone(validator):
    assert validator.validate(make_form(customer_phone="")).error == "Mobile number is required"


def test_due_date_required_only_for_measurement_orders(validator):
    assert validator.validate(make_form(due_date="")).error == "Due date is required"
    assert validator.validate(make_form(due_date="31/02/2026")).field == "due_date"

    manual = make_form(
        due_date="", is_manual_bill=True, payment_mode="Pay Now", pay_now_amount="1000", cash_payment_mode="Cash",
    )
    outcome = validator.validate(manual)
    assert outcome.ok
    assert outcome.payment.payload["payment_status"] == "paid"


def test_manual_bill_surfaces_payment_field_errors(validator):
    form = make_form(is_manual_bill=True, payment_mode="Partial", pay_now_amount="1000", cash_payment_mode="Cash", pay_later_date="01/11/2026")
    outcome = validator.validate(form)
    assert not outcome.ok
    assert outcome.field == "pay_now_amount"
    assert outcome.field_errors == {"pay_now_amount": "Partial payment must be less than final payable"}


def test_advance_payment_rules(validator):
    assert validator.validate(make_form(advance_payment="")).error == "Advance payment is required"
    assert validator.validate(make_form(advance_payment="0")).error == "Advance payment is required"
    assert validator.validate(make_form(advance_payment="1500")).error == "Advance payment cannot be greater than total amount"
    assert validator.validate(make_form(advance_payment="1000")).ok
    assert validator.validate(make_form(advance_payment="", payment_mode="Pay Later")).ok


def test_every_item_needs_garment_and_price(validator):
    items = [LineItem(garment_type="Shirt", price_per_item=500), LineItem(garment_type=" ", price_per_item=300)]
    assert validator.validate(make_form(items=items)).error == "Item 2: Please enter a garment type"

    items = [LineItem(garment_type="Shirt", price_per_item=500), LineItem(garment_type="Kurta", price_per_item=0)]
    assert validator.validate(make_form(items=items, advance_payment="100")).error == "Item 2: Please enter a valid price"


def test_order_needs_at_least_one_item(validator):
    assert validator.validate(make_form(items=[])).error == "You must have at least one item"


def test_required_preset_fields_apply_to_measurement_orders_only(validator, shirt_preset):
    item = LineItem(garment_type="Shirt", price_per_item=800, selected_preset_id="7", measurements={"chest": "", "length": "30"})
    presets = {"7": shirt_preset}

    outcome = validator.validate(make_form(items=[item]), presets)
    assert outcome.error == "Item 1: Chest is required"

    manual = make_form(items=[item], is_manual_bill=True, payment_mode="Pay Now", pay_now_amount="800", cash_payment_mode="Cash")
    assert validator.validate(manual, presets).ok
