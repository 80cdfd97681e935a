"""In-memory shapes used while an order is being put together.

These are the client-side views of presets, past orders and line items. The
persisted rows live in ``models.order`` and ``models.preset``.
"""
from typing import Optional, List, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PresetField(BaseModel):
    name: str
    label: Optional[str] = None
    unit: Literal["inches", "cm", "any"] = "inches"
    required: bool = False

    @property
    def display_label(self) -> str:
        return self.label or self.name


class Preset(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    fields: List[PresetField] = Field(default_factory=list)
    base_price: Optional[float] = Field(default=None, ge=0)

    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]


class Customer(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None


class PastOrderItem(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    garment_type: Optional[str] = None
    measurements: Optional[Dict[str, str]] = None
    measurement_preset_id: Optional[str] = None


class PastOrder(BaseModel):
    """An order read back from the store; either legacy or multi-item shaped."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: Optional[str] = None
    order_type: Optional[str] = None
    measurements: Optional[Dict[str, str]] = None
    order_items: List[PastOrderItem] = Field(default_factory=list)

    @field_validator("order_items", mode="before")
    @classmethod
    def _no_items(cls, v):
        # legacy single-garment orders are stored with order_items = null
        return [] if v is None else v


class MeasurementMatch(BaseModel):
    measurements: Dict[str, str]
    source: str
    preset_id: Optional[str] = None


class LineItem(BaseModel):
    model_config = ConfigDict(validate_assignment=True, coerce_numbers_to_str=True)

    garment_type: str = ""
    quantity: int = Field(default=1, ge=1)
    price_per_item: Optional[float] = Field(default=None, ge=0)
    selected_preset_id: Optional[str] = None
    measurements: Dict[str, str] = Field(default_factory=dict)
    extra_measurements: Dict[str, str] = Field(default_factory=dict)
    notes: str = ""
    is_custom_type: bool = False
    # bumped whenever garment_type changes so late autofill results can be told apart
    revision: int = 0

    @property
    def total_price(self) -> float:
        return (self.price_per_item or 0.0) * self.quantity


class OrderForm(BaseModel):
    """Everything the user has typed so far, as raw form values."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    customer_name: str = ""
    customer_phone: str = ""
    customer_email: str = ""
    # DD/MM/YYYY
    due_date: str = ""
    notes: str = ""
    is_manual_bill: bool = False

    advance_payment: str = ""
    payment_mode: str = ""
    discount_amount: str = ""
    pay_now_amount: str = ""
    pay_later_date: str = ""
    cash_payment_mode: str = ""

    items: List[LineItem] = Field(default_factory=lambda: [LineItem()])

    @property
    def gross_total(self) -> float:
        return sum(item.total_price for item in self.items)


class PaymentSummary(BaseModel):
    gross_amount: float
    discount: float
    final_payable: float
    pay_now: float
    remaining: float
