"""Order construction state machine.

One controller owns one in-progress order for one shop session: customer
details, line items, the measurement/manual entry mode and the payment inputs.
It drives the matcher and reconciler, saves drafts on request and performs the
final submit against the order store.

States::

    EMPTY -> EDITING -> SAVING -> SUBMITTED
                 ^         |
                 +--- SUBMIT_FAILED

``draft_persisted`` is tracked separately and is never affected by submit.
"""
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging

from pydantic import BaseModel, Field, ValidationError

from tailor_intake.config import HISTORY_LIMIT
from tailor_intake.models.intake import (
    Customer,
    LineItem,
    MeasurementMatch,
    OrderForm,
    PastOrder,
    PaymentSummary,
    Preset,
)
from tailor_intake.models.order import CREATED_STATUS, DRAFT_STATUS
from tailor_intake.services.matcher import MeasurementMatcher, read_past_orders
from tailor_intake.services.order_store import OrderStoreError
from tailor_intake.services.payment import PAY_LATER, PaymentReconciler, PaymentResult
from tailor_intake.services.validation import PHONE_RE, OrderValidator, normalize_phone
from tailor_intake.utils.dates import InvalidDateError, to_display_date, to_iso_date
from tailor_intake.utils.numbers import parse_int, parse_number

logger = logging.getLogger(__name__)

UNSPECIFIED_GARMENT = "Unspecified"
LAST_ITEM_MESSAGE = "You must have at least one item"
SUBMIT_FAILED_MESSAGE = "Failed to create order. Please try again."
PAYMENT_FIELDS = ("advance_payment", "payment_mode", "discount_amount", "pay_now_amount", "pay_later_date", "cash_payment_mode")
ITEM_FIELDS = ("garment_type", "quantity", "price_per_item", "notes")


class EntryMode(str, Enum):
    MEASUREMENT = "measurement"
    MANUAL = "manual"


class ControllerState(str, Enum):
    EMPTY = "empty"
    EDITING = "editing"
    SAVING = "saving"
    SUBMITTED = "submitted"
    SUBMIT_FAILED = "submit_failed"


class ShopSession(BaseModel):
    shop_id: str
    token: Optional[str] = None


class SubmitResult(BaseModel):
    ok: bool
    error: Optional[str] = None
    field_errors: Dict[str, str] = Field(default_factory=dict)
    order: Optional[Dict[str, Any]] = None
    invoice: Optional[Dict[str, Any]] = None
    # the order was created but the old draft could not be removed
    draft_cleanup_failed: bool = False
    orphaned_draft_id: Optional[str] = None


class OrderDraftController:
    def __init__(
        self,
        session: ShopSession,
        store: Any,
        mode: Union[EntryMode, str] = EntryMode.MEASUREMENT,
        matcher: Optional[MeasurementMatcher] = None,
        reconciler: Optional[PaymentReconciler] = None,
        today: Callable[[], date] = date.today,
        history_limit: int = HISTORY_LIMIT,
        atomic_promote: bool = True,
    ):
        self.session = session
        self.store = store
        self.matcher = matcher or MeasurementMatcher()
        self.reconciler = reconciler or PaymentReconciler(today=today)
        self.validator = OrderValidator(self.reconciler)
        self.history_limit = history_limit
        self.atomic_promote = atomic_promote

        self.form = OrderForm(is_manual_bill=EntryMode(mode) == EntryMode.MANUAL)
        self.state = ControllerState.EMPTY
        self.draft_id: Optional[str] = None
        self.draft_persisted = False

        self.presets: Dict[str, Preset] = {}
        self.customers: List[Customer] = []
        self.history: List[PastOrder] = []
        self._history_token = 0

        self.error: Optional[str] = None
        self.field_errors: Dict[str, str] = {}

    # -- state helpers ---------------------------------------------------

    def _touch(self) -> None:
        if self.state == ControllerState.SUBMITTED:
            raise RuntimeError("Order has already been submitted")
        self.state = ControllerState.EDITING
        self.error = None
        self.field_errors = {}

    def _reject(self, message: str) -> bool:
        logger.info("Rejected edit: %s", message)
        self.error = message
        return False

    def _item(self, index: int) -> LineItem:
        if index < 0 or index >= len(self.form.items):
            raise IndexError(f"no line item at position {index}")
        return self.form.items[index]

    @property
    def mode(self) -> EntryMode:
        return EntryMode.MANUAL if self.form.is_manual_bill else EntryMode.MEASUREMENT

    @property
    def gross_total(self) -> float:
        return self.form.gross_total

    def set_mode(self, mode: Union[EntryMode, str]) -> None:
        self._touch()
        self.form.is_manual_bill = EntryMode(mode) == EntryMode.MANUAL

    def payment_summary(self) -> PaymentSummary:
        return self.reconciler.summarize(self.gross_total, self.form.discount_amount, self.form.pay_now_amount)

    # -- catalog / customers ---------------------------------------------

    def load_presets(self) -> bool:
        try:
            presets = self.store.get_presets(self.session.shop_id)
        except OrderStoreError as e:
            logger.warning("Failed to load presets for shop=%s: %s", self.session.shop_id, e)
            return False
        self.presets = {p.id: p for p in presets}
        return True

    def load_customers(self) -> bool:
        try:
            self.customers = list(self.store.get_customers(self.session.shop_id))
        except OrderStoreError as e:
            logger.warning("Failed to load customers for shop=%s: %s", self.session.shop_id, e)
            return False
        return True

    def customer_suggestions(self, query: str, limit: int = 5) -> List[Customer]:
        q = (query or "").strip().lower()
        if not q:
            return []
        digits = normalize_phone(q)
        found = [
            c for c in self.customers
            if q in c.name.lower() or (digits.isdigit() and digits in normalize_phone(c.phone))
        ]
        return found[:limit]

    # -- customer and order fields ---------------------------------------

    def set_customer(self, name: Optional[str] = None, phone: Optional[str] = None, email: Optional[str] = None) -> None:
        self._touch()
        if name is not None:
            self.form.customer_name = name
        if email is not None:
            self.form.customer_email = email
        if phone is not None and phone != self.form.customer_phone:
            self.form.customer_phone = phone
            # history belongs to the previous number; drop it and ignore any fetch still in flight
            self.history = []
            self._history_token += 1

    def pick_customer(self, customer: Customer) -> None:
        self.set_customer(name=customer.name, phone=customer.phone, email=customer.email or "")

    def set_due_date(self, due_date: str) -> None:
        self._touch()
        self.form.due_date = due_date or ""

    def set_notes(self, notes: str) -> None:
        self._touch()
        self.form.notes = notes or ""

    def set_payment(self, **fields: Any) -> None:
        unknown = set(fields) - set(PAYMENT_FIELDS)
        if unknown:
            raise ValueError(f"unknown payment fields: {sorted(unknown)}")
        self._touch()
        for name, value in fields.items():
            setattr(self.form, name, "" if value is None else str(value))

    # -- line items --------------------------------------------------------

    def add_item(self) -> int:
        self._touch()
        self.form.items.append(LineItem())
        return len(self.form.items) - 1

    def remove_item(self, index: int) -> bool:
        self._touch()
        self._item(index)
        if len(self.form.items) == 1:
            return self._reject(LAST_ITEM_MESSAGE)
        del self.form.items[index]
        return True

    def update_item(self, index: int, field: str, value: Any) -> bool:
        if field not in ITEM_FIELDS:
            raise ValueError(f"unknown item field: {field}")
        self._touch()
        item = self._item(index)
        try:
            if field == "garment_type":
                value = value or ""
                if value != item.garment_type:
                    item.garment_type = value
                    item.revision += 1
            elif field == "quantity":
                item.quantity = parse_int(value, default=1)
            elif field == "price_per_item":
                item.price_per_item = parse_number(value)
            else:
                item.notes = value or ""
        except ValidationError:
            return self._reject(f"Item {index + 1}: invalid {field.replace('_', ' ')}")
        return True

    def select_preset(self, index: int, preset_id: Any) -> bool:
        self._touch()
        item = self._item(index)
        preset = self.presets.get(str(preset_id))
        if preset is None:
            return self._reject(f"Item {index + 1}: unknown measurement preset")

        match = self.matcher.find(item.garment_type.strip() or preset.name, self.history)
        measurements = {name: "" for name in preset.field_names()}
        extra = dict(item.extra_measurements)
        if match is not None:
            for key, value in match.measurements.items():
                if key in measurements:
                    measurements[key] = value
                else:
                    extra.setdefault(key, value)

        item.selected_preset_id = preset.id
        item.is_custom_type = False
        item.measurements = measurements
        item.extra_measurements = extra
        if not item.garment_type.strip():
            item.garment_type = preset.name
            item.revision += 1
        if not item.price_per_item and preset.base_price is not None:
            item.price_per_item = preset.base_price
        return True

    def choose_custom_type(self, index: int) -> None:
        self._touch()
        item = self._item(index)
        item.selected_preset_id = None
        item.is_custom_type = True
        item.garment_type = ""
        item.revision += 1

    def set_measurement(self, index: int, field: str, value: Any) -> None:
        self._touch()
        item = self._item(index)
        value = "" if value is None else str(value)
        preset = self.presets.get(item.selected_preset_id) if item.selected_preset_id else None
        if preset is not None and field not in preset.field_names():
            item.extra_measurements = {**item.extra_measurements, field: value}
        else:
            item.measurements = {**item.measurements, field: value}

    # -- measurement history -----------------------------------------------

    def request_history(self) -> int:
        self._history_token += 1
        return self._history_token

    def receive_history(self, token: int, orders: List[Any]) -> bool:
        if token != self._history_token:
            logger.debug("Discarding stale history response token=%s latest=%s", token, self._history_token)
            return False
        self.history = read_past_orders(orders)
        return True

    def fetch_history(self) -> bool:
        phone = normalize_phone(self.form.customer_phone)
        if not PHONE_RE.match(phone):
            return False
        token = self.request_history()
        try:
            orders = self.store.get_orders(self.session.shop_id, customer_phone=phone, limit=self.history_limit)
        except OrderStoreError as e:
            logger.warning("Failed to fetch history for customer: %s", e)
            return False
        return self.receive_history(token, orders)

    def suggest_measurements(self, index: int) -> Tuple[Optional[MeasurementMatch], int]:
        """Matcher result for an item plus the item revision it was computed for."""
        item = self._item(index)
        return self.matcher.find(item.garment_type, self.history), item.revision

    def apply_autofill(self, index: int, match: Optional[MeasurementMatch], revision: int) -> bool:
        item = self._item(index)
        if match is None or revision != item.revision:
            return False
        self._touch()
        preset = self.presets.get(item.selected_preset_id) if item.selected_preset_id else None
        allowed = set(preset.field_names()) if preset else None
        measurements = dict(item.measurements)
        extra = dict(item.extra_measurements)
        for key, value in match.measurements.items():
            target = measurements if allowed is None or key in allowed else extra
            # only fill blanks; never overwrite what the user typed
            if not (target.get(key) or "").strip():
                target[key] = value
        item.measurements = measurements
        item.extra_measurements = extra
        return True

    # -- drafts ------------------------------------------------------------

    def load_draft(self, draft_id: Any) -> bool:
        try:
            order = self.store.get_draft(draft_id)
        except OrderStoreError as e:
            logger.warning("Failed to load draft id=%s: %s", draft_id, e)
            return self._reject("Could not load the saved draft")
        if not order or order.get("status") != DRAFT_STATUS:
            return self._reject("Draft not found")

        self.form = self._form_from_order(order)
        self.draft_id = str(order.get("id") or draft_id)
        self.draft_persisted = True
        self.state = ControllerState.EDITING
        self.error = None
        self.field_errors = {}
        logger.info("Loaded draft id=%s with %s item(s)", self.draft_id, len(self.form.items))
        return True

    def _form_from_order(self, order: Dict[str, Any]) -> OrderForm:
        items = []
        for raw in order.get("order_items") or []:
            garment = raw.get("garment_type") or ""
            if garment == UNSPECIFIED_GARMENT:
                garment = ""
            preset_id = raw.get("measurement_preset_id")
            items.append(LineItem(
                garment_type=garment,
                quantity=max(1, parse_int(raw.get("quantity"), default=1)),
                price_per_item=raw.get("price_per_item") or None,
                selected_preset_id=str(preset_id) if preset_id else None,
                measurements=raw.get("measurements") or {},
                extra_measurements=raw.get("extra_measurements") or {},
                notes=raw.get("notes") or "",
                is_custom_type=not preset_id and bool(garment),
            ))

        def text(key: str) -> str:
            value = order.get(key)
            return "" if value is None else str(value)

        def amount(key: str) -> str:
            value = parse_number(order.get(key))
            return "" if not value else f"{value:g}"

        return OrderForm(
            customer_name=text("customer_name"),
            customer_phone=text("customer_phone"),
            customer_email=text("customer_email"),
            due_date=to_display_date(order.get("due_date")),
            notes=text("notes"),
            is_manual_bill=bool(order.get("is_manual_bill")),
            advance_payment=amount("advance_payment"),
            payment_mode=text("payment_mode"),
            discount_amount=amount("discount"),
            pay_now_amount=amount("pay_now"),
            pay_later_date=to_display_date(order.get("pay_later_date")),
            cash_payment_mode=text("cash_payment_mode"),
            items=items or [LineItem()],
        )

    def save_draft(self) -> bool:
        """Best-effort draft save; never raises for store failures."""
        if not self.form.customer_name.strip() or not self.form.customer_phone.strip():
            logger.debug("Skipping draft save: customer name/phone missing")
            return False

        payload = self._build_payload(draft=True)
        try:
            if self.draft_id is None:
                resp = self.store.create_order(payload)
                order = resp.get("order") or resp
                self.draft_id = str(order.get("id")) if order.get("id") is not None else None
            else:
                self.store.update_order(self.draft_id, payload)
        except OrderStoreError as e:
            logger.warning("Draft save failed (ignored): %s", e)
            return False

        self.draft_persisted = True
        logger.info("Draft saved id=%s", self.draft_id)
        return True

    # -- payloads ----------------------------------------------------------

    def _item_payload(self, item: LineItem, relaxed: bool) -> Dict[str, Any]:
        garment = item.garment_type.strip()
        price = item.price_per_item
        if relaxed:
            garment = garment or UNSPECIFIED_GARMENT
            price = price or 0.0
        data: Dict[str, Any] = {
            "garment_type": garment,
            "quantity": item.quantity,
            "price_per_item": price,
            "total_price": item.total_price,
        }
        if item.selected_preset_id:
            data["measurement_preset_id"] = item.selected_preset_id
            preset = self.presets.get(item.selected_preset_id)
            if preset is not None:
                data["preset_name"] = preset.name
        if item.measurements:
            data["measurements"] = dict(item.measurements)
        if item.extra_measurements:
            data["extra_measurements"] = dict(item.extra_measurements)
        if item.notes.strip():
            data["notes"] = item.notes.strip()
        return data

    @staticmethod
    def _optional_iso(value: str) -> Optional[str]:
        try:
            return to_iso_date(value)
        except InvalidDateError:
            return None

    def _build_payload(self, draft: bool, payment: Optional[PaymentResult] = None) -> Dict[str, Any]:
        form = self.form
        gross = form.gross_total
        payload: Dict[str, Any] = {
            "shop_id": self.session.shop_id,
            "status": DRAFT_STATUS if draft else CREATED_STATUS,
            "customer_name": form.customer_name.strip(),
            "customer_phone": normalize_phone(form.customer_phone),
            "is_manual_bill": form.is_manual_bill,
            "order_items": [self._item_payload(item, relaxed=draft) for item in form.items],
        }
        if form.customer_email.strip():
            payload["customer_email"] = form.customer_email.strip()
        if form.notes.strip():
            payload["notes"] = form.notes.strip()

        if form.payment_mode.strip():
            payload["payment_mode"] = form.payment_mode.strip()
        if form.cash_payment_mode.strip():
            payload["cash_payment_mode"] = form.cash_payment_mode.strip()

        if form.is_manual_bill:
            if payment is not None and payment.payload is not None:
                payload.update({k: v for k, v in payment.payload.items() if v is not None})
                payload["advance_payment"] = payment.payload["pay_now"]
            else:
                summary = self.payment_summary()
                payload["discount"] = summary.discount
                payload["pay_now"] = summary.pay_now
                payload["advance_payment"] = summary.pay_now
                pay_later = self._optional_iso(form.pay_later_date)
                if pay_later:
                    payload["pay_later_date"] = pay_later
        else:
            due = self._optional_iso(form.due_date)
            if due:
                payload["due_date"] = due
            advance = max(0.0, parse_number(form.advance_payment) or 0.0)
            remaining = max(0.0, gross - advance)
            payload["advance_payment"] = advance
            if not draft:
                payload["remaining"] = remaining
                if remaining == 0:
                    payload["payment_status"] = "paid"
                elif form.payment_mode.strip() == PAY_LATER:
                    payload["payment_status"] = "scheduled"
                else:
                    payload["payment_status"] = "partial"
        return payload

    # -- submit ------------------------------------------------------------

    def submit(self) -> SubmitResult:
        if self.state == ControllerState.SUBMITTED:
            return SubmitResult(ok=False, error="Order has already been submitted")
        self.error = None
        self.field_errors = {}

        outcome = self.validator.validate(self.form, self.presets)
        if not outcome.ok:
            self.state = ControllerState.EDITING
            self.error = outcome.error
            self.field_errors = outcome.field_errors or ({outcome.field: outcome.error} if outcome.field else {})
            return SubmitResult(ok=False, error=self.error, field_errors=self.field_errors)

        payload = self._build_payload(draft=False, payment=outcome.payment)
        self.state = ControllerState.SAVING
        draft_id = self.draft_id
        promote = getattr(self.store, "promote_draft", None) if self.atomic_promote else None
        try:
            resp = None
            if draft_id is not None and promote is not None:
                try:
                    resp = promote(draft_id, payload)
                except OrderStoreError as e:
                    if e.status_code != 404:
                        raise
                    # draft is already gone server-side; submit as a fresh order
                    logger.warning("Draft id=%s no longer exists, creating order directly", draft_id)
                    self.draft_id = draft_id = None
            if resp is None:
                resp = self.store.create_order(payload)
        except OrderStoreError as e:
            logger.exception("Order submit failed: %s", e)
            self.state = ControllerState.SUBMIT_FAILED
            self.error = e.detail if isinstance(e.detail, str) and e.detail else SUBMIT_FAILED_MESSAGE
            return SubmitResult(ok=False, error=self.error)

        result = SubmitResult(ok=True, order=resp.get("order") or resp, invoice=resp.get("invoice"))
        if draft_id is not None and promote is None:
            try:
                self.store.delete_order(draft_id)
            except OrderStoreError as e:
                logger.error("Order created but draft id=%s could not be deleted: %s", draft_id, e)
                result.draft_cleanup_failed = True
                result.orphaned_draft_id = draft_id

        self.state = ControllerState.SUBMITTED
        self.draft_id = None
        logger.info("Order submitted id=%s from_draft=%s", (result.order or {}).get("id"), draft_id)
        return result
