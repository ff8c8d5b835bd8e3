from __future__ import annotations

import math
import re
from typing import Any

import numpy as np

"""Cell coercion helpers shared by the BOQ parser and the GRN importer.

pandas hands back Python and numpy scalars (np.int64, np.float64), strings,
and datetimes. Numbers typed as text are read with leading-prefix
semantics: "12.5 cum" reads as 12.5, "abc" does not read at all.
"""

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def is_number(value: Any) -> bool:
    """True for int/float (python or numpy) values that are not NaN; bools excluded."""
    if isinstance(value, (bool, np.bool_)):
        return False
    if isinstance(value, (int, np.integer)):
        return True
    if isinstance(value, (float, np.floating)):
        return not math.isnan(value)
    return False


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def parse_float(value: Any) -> float | None:
    """Read a cell as a float, or None when it holds no leading number."""
    if is_number(value):
        return float(value)
    if is_blank(value) or isinstance(value, (bool, np.bool_)):
        return None
    m = _NUMBER_PREFIX.match(str(value).strip())
    if m is None:
        return None
    return float(m.group(0))


def float_or_zero(value: Any) -> float:
    n = parse_float(value)
    if n is None or math.isinf(n):
        return 0.0
    return n


def cell_text(value: Any) -> str:
    """Trimmed text of a cell; blanks read as ''. Numbers print without a trailing '.0'."""
    if is_blank(value):
        return ""
    if is_number(value):
        return format_number(value)
    return str(value).strip()


def format_number(value: Any) -> str:
    """Render a number the way a spreadsheet shows it: 120.0 -> '120', 1.1 -> '1.1'."""
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    f = float(value)
    if f.is_integer():
        return str(int(f))
    return repr(f)
