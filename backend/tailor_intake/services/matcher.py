from typing import Any, Dict, Iterable, List, Optional, Union
import logging

from pydantic import ValidationError

from tailor_intake.models.intake import MeasurementMatch, PastOrder

logger = logging.getLogger(__name__)

LEGACY_SOURCE = "previous order"
ITEM_SOURCE = "previous order item"


def read_past_orders(raw_orders: Optional[Iterable[Union[PastOrder, Dict[str, Any]]]]) -> List[PastOrder]:
    """Parse store records into PastOrder, skipping ones that cannot be read."""
    orders = []
    for raw in raw_orders or []:
        if isinstance(raw, PastOrder):
            orders.append(raw)
            continue
        try:
            orders.append(PastOrder.model_validate(raw))
        except ValidationError as e:
            logger.warning("Skipping unreadable past order %r: %s", raw.get("id") if isinstance(raw, dict) else raw, e)
    return orders


class MeasurementMatcher:
    """Finds reusable measurements in a customer's past orders.

    Rules:
    - the target garment type is trimmed and lowercased; empty -> no match
    - a record matches when its lowercased type *contains* the target
    - past orders are scanned in the order given (caller passes newest first)
    - within one past order the legacy single-measurement record is checked
      before the multi-item records, unless ``prefer_legacy`` is off
    - the first matching record with a non-empty measurement map wins

    Pure: no I/O, never raises for missing data.
    """

    def __init__(self, prefer_legacy: bool = True):
        self.prefer_legacy = prefer_legacy

    def _legacy(self, order: PastOrder, target: str) -> Optional[MeasurementMatch]:
        if order.order_type and target in order.order_type.lower() and order.measurements:
            return MeasurementMatch(measurements=dict(order.measurements), source=LEGACY_SOURCE)
        return None

    def _items(self, order: PastOrder, target: str) -> Optional[MeasurementMatch]:
        for item in order.order_items:
            if item.garment_type and target in item.garment_type.lower() and item.measurements:
                return MeasurementMatch(
                    measurements=dict(item.measurements),
                    source=ITEM_SOURCE,
                    preset_id=item.measurement_preset_id,
                )
        return None

    def find(self, garment_type: Optional[str], past_orders: Iterable[Union[PastOrder, Dict[str, Any]]]) -> Optional[MeasurementMatch]:
        target = (garment_type or "").strip().lower()
        if not target:
            return None

        checks = (self._legacy, self._items) if self.prefer_legacy else (self._items, self._legacy)
        for order in read_past_orders(past_orders):
            for check in checks:
                match = check(order, target)
                if match is not None:
                    logger.debug("Measurement match for %r from order=%s (%s)", target, order.id, match.source)
                    return match
        return None


_default = MeasurementMatcher()


def find_measurements(garment_type: Optional[str], past_orders: Iterable[Union[PastOrder, Dict[str, Any]]]) -> Optional[MeasurementMatch]:
    return _default.find(garment_type, past_orders)
