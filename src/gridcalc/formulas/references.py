"""A1-style cell reference helpers.

Columns use bijective base-26: A=0, Z=25, AA=26, AZ=51, BA=52.  Rows in a
reference are 1-based; the helpers below return 0-based rows.
"""

from __future__ import annotations

import re

_REF_RE = re.compile(r"^([A-Z]+)(\d+)$")


def column_name_of(index: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if index < 0:
        raise ValueError(f"Column index must be non-negative, got {index}")
    result = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def column_index_of(name: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    if not name or not name.isalpha() or not name.isupper():
        raise ValueError(f"Invalid column name: {name!r}")
    idx = 0
    for ch in name:
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def parse_ref(ref: str) -> tuple[int, int]:
    """Parse 'B12' -> (row_0based, col_0based).

    Raises ValueError on bad address, including row 0.
    """
    m = _REF_RE.match(ref)
    if not m or int(m.group(2)) < 1:
        raise ValueError(f"Invalid cell reference: {ref!r}")
    return int(m.group(2)) - 1, column_index_of(m.group(1))


def make_ref(row: int, col: int) -> str:
    """Build cell reference from 0-based row/col."""
    if row < 0:
        raise ValueError(f"Row index must be non-negative, got {row}")
    return f"{column_name_of(col)}{row + 1}"
