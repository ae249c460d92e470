"""American Soundex codes for surname pre-filtering.

The code is a letter followed by three digits. Letters that sound alike share a
digit; vowels separate repeated digits while ``H`` and ``W`` do not. Accented
letters are folded to their ASCII base first, anything else that is not a letter
is dropped.

Known limitation: the first letter is kept verbatim, so ``Cruz`` (C620) and
``Kruz`` (K620) never share a code.
"""

from __future__ import annotations

import unicodedata
from typing import Final

CODE_LENGTH: Final[int] = 4

_DIGITS: Final[dict[str, str]] = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}
_TRANSPARENT: Final[frozenset[str]] = frozenset("HW")


def _ascii_letters(value: str) -> str:
    folded = unicodedata.normalize("NFKD", value)
    return "".join(char for char in folded.upper() if "A" <= char <= "Z")


def phonetic_code(surname: str) -> str:
    """Return the Soundex code of ``surname`` (empty when it has no letters)."""

    letters = _ascii_letters(surname)
    if not letters:
        return ""

    head = letters[0]
    digits: list[str] = []
    previous = _DIGITS.get(head)
    for char in letters[1:]:
        digit = _DIGITS.get(char)
        if digit is None:
            if char not in _TRANSPARENT:
                previous = None
            continue
        if digit != previous:
            digits.append(digit)
            if len(digits) == CODE_LENGTH - 1:
                break
        previous = digit

    return (head + "".join(digits)).ljust(CODE_LENGTH, "0")


__all__ = ["phonetic_code"]
