"""
Locale-aware number parsing for Spanish-format measurement documents.

Documents use ',' for decimals and '.' for thousands ("1.200,50" is 1200.5).
Ambiguous values fall back to the fewer-digit reading: "10.000" is 10, not 10000.
"""

import re
from typing import Union

# Everything that is not a digit, separator or sign (units, currency, spaces)
_NOISE_RE = re.compile(r"[^\d,.\-]")


def parse_decimal(value: Union[str, int, float]) -> float:
    """
    Normalise a quantity or price to a float with decimal-point semantics.

    Examples:
        "1.200,50" -> 1200.5
        "1,200.50" -> 1200.5
        "30,00"    -> 30.0
        "10.000"   -> 10.0
        "1.200.000" -> 1200000.0
        "10,5 m2"  -> 10.5

    Raises:
        ValueError: if no number can be read from value
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = (value or "").strip()
    # Drop unit suffixes such as m2/m3 before stripping noise, their digits are not part of the value
    text = re.sub(r"(?i)\s*(m²|m³|m2|m3)\s*$", "", text)
    text = _NOISE_RE.sub("", text)
    if not text or not re.search(r"\d", text):
        raise ValueError(f"Not a number: {value!r}")

    negative = text.startswith("-")
    if negative:
        text = text[1:]
    # Only a leading '-' is a sign; "10-20" is a range, not 1020
    if "-" in text:
        raise ValueError(f"Not a number: {value!r}")

    has_comma = "," in text
    has_dot = "." in text

    if has_comma and has_dot:
        # Whichever separator comes last is the decimal one
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        if text.count(",") == 1:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_dot and text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"Not a number: {value!r}")

    return -number if negative else number
