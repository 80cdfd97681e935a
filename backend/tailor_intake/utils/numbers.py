import math
from typing import Any, Optional


def parse_number(value: Any) -> Optional[float]:
    """Lenient float parse for form input. Returns None for blanks and junk."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_int(value: Any, default: int = 1) -> int:
    number = parse_number(value)
    if number is None:
        return default
    return int(number)
