from __future__ import annotations

import math
from typing import Any, Union

Number = Union[int, float]


def to_number(value: Any, default: Number = 0) -> Number:
    # Loose numeric coercion for form input: "7" -> 7, "" / None / "abc" / NaN -> default.
    if value is None or isinstance(value, bool):
        return int(value) if isinstance(value, bool) else default
    if isinstance(value, (int, float)):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        if not s:
            return default
        try:
            n = float(s)
        except ValueError:
            return default
    else:
        return default
    if isinstance(n, float):
        if not math.isfinite(n):
            return default
        if n.is_integer():
            n = int(n)
    return n or default


def to_quantity(value: Any) -> int:
    """Whole unit count; invalid input becomes 0. Sign is left to the caller."""
    return int(to_number(value, 0))
