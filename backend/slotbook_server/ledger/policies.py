"""
Index policies for availability entry lists.

Entry lists are addressed by 0-based position, recomputed on every read.
The rules for what an out-of-range or unparseable index means live here so
they can be changed without touching the ledger itself.
"""

from __future__ import annotations

import re
from typing import Any

_LEADING_INTEGER = re.compile(r"\s*([+-]?)(0[xX][0-9a-fA-F]+|[0-9]+)")


def is_valid_index(entries: list[Any], index: int) -> bool:
    """True iff ``0 <= index < len(entries)``."""
    return 0 <= index < len(entries)


def parse_index_lenient(raw: str | None) -> int | None:
    """Read the leading integer of ``raw``, or None if there is none.

    Trailing text is ignored (``"1.7"`` and ``"2abc"`` read as 1 and 2) and a
    ``0x`` prefix reads as hexadecimal. None addresses no entry.
    """
    if raw is None:
        return None
    match = _LEADING_INTEGER.match(raw)
    if match is None:
        return None
    sign, digits = match.groups()
    value = int(digits, 16) if digits[:2].lower() == "0x" else int(digits)
    return -value if sign == "-" else value


def replace_entry(entries: list[Any], index: int, entry: Any) -> list[Any]:
    """Return a copy of ``entries`` with position ``index`` replaced.

    The caller must have checked the index with is_valid_index().
    """
    updated = list(entries)
    updated[index] = entry
    return updated


def remove_entry_lenient(entries: list[Any], index: int | None) -> list[Any]:
    """Return a copy of ``entries`` without position ``index``.

    An out-of-range or missing index removes nothing and is not an error:
    the caller still writes the list back and reports success.
    """
    return [entry for position, entry in enumerate(entries) if position != index]
