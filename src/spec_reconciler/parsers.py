"""Unit-aware value parsers for specification options.

Lengths are returned in millimeters:
- '2mm' -> 2.0, '2.0 mm' -> 2.0
- '1 inch' -> 25.4, '1"' -> 25.4
- '1 ft' -> 304.8, "1'" -> 304.8
- '2 m' -> 2000.0, '6 Mtr' -> 6000.0, '5 cm' -> 50.0
- '10' -> 10.0 (unmarked values are assumed to be mm)
- '10 kg' -> None (a non-length unit glued to the number)
"""

import re


# =============================================================================
# PRE-COMPILED REGEX PATTERNS
# =============================================================================

# First number in the value and its length unit, if any
_MEASUREMENT_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*"
    r"(?:(millimet(?:er|re)s?|centimet(?:er|re)s?|met(?:er|re)s?|mtrs?|mm|cm|m"
    r"|inch(?:es)?|in|feet|foot|ft)\b|([\"']))?",
    re.IGNORECASE,
)
# A letter right after the number that did not match a length unit ('10 kg', '304L')
_OTHER_UNIT_PATTERN = re.compile(r"\s*[a-z]", re.IGNORECASE)
# Range: '0.14-2.00 mm', '1 - 5mm', '10-20'
_RANGE_PATTERN = re.compile(
    r"(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*(mm|cm|m|inch|in)?", re.IGNORECASE
)
# Single magnitude: '1.5 mm', '2in', '7'
_MAGNITUDE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(mm|cm|m|inch|in)?", re.IGNORECASE)
# Grade: '304', '304L', '316ti' (digits plus optional letter suffix)
_GRADE_PATTERN = re.compile(r"(\d+[a-z]*)\b", re.IGNORECASE)


# Unit token -> millimeters per unit
LENGTH_UNITS_MM: dict[str, float] = {
    "mm": 1.0,
    "millimeter": 1.0,
    "millimeters": 1.0,
    "millimetre": 1.0,
    "millimetres": 1.0,
    "cm": 10.0,
    "centimeter": 10.0,
    "centimeters": 10.0,
    "centimetre": 10.0,
    "centimetres": 10.0,
    "m": 1000.0,
    "meter": 1000.0,
    "meters": 1000.0,
    "metre": 1000.0,
    "metres": 1000.0,
    "mtr": 1000.0,
    "mtrs": 1000.0,
    "inch": 25.4,
    "inches": 25.4,
    "in": 25.4,
    '"': 25.4,
    "ft": 304.8,
    "feet": 304.8,
    "foot": 304.8,
    "'": 304.8,
}


def parse_length_mm(s: str) -> float | None:
    """Parse the leading measurement of a value and convert it to mm.

    Returns None when there is no number, or when the number carries a unit
    that is not a length ('10 kg', '304L').
    """
    if not s:
        return None
    match = _MEASUREMENT_PATTERN.search(s)
    if not match:
        return None
    value = float(match.group(1))
    unit = (match.group(2) or match.group(3) or "").lower()
    if unit:
        return value * LENGTH_UNITS_MM[unit]
    if _OTHER_UNIT_PATTERN.match(s, match.end()):
        return None
    return value


def _range_unit(unit: str | None) -> str:
    unit = (unit or "").lower()
    return "in" if unit == "inch" else unit


def parse_range(s: str) -> tuple[float, float, str] | None:
    """Parse a numeric range: '0.14-2.00 mm' -> (0.14, 2.0, 'mm').

    The unit is '' when absent ('inch' is reported as 'in').
    Returns None for anything that is not a range.
    """
    if not s:
        return None
    match = _RANGE_PATTERN.search(s)
    if not match:
        return None
    return float(match.group(1)), float(match.group(2)), _range_unit(match.group(3))


def parse_magnitude(s: str) -> tuple[float, str] | None:
    """Parse a single magnitude: '1.5 mm' -> (1.5, 'mm'), '7' -> (7.0, '')."""
    if not s:
        return None
    match = _MAGNITUDE_PATTERN.search(s)
    if not match:
        return None
    return float(match.group(1)), _range_unit(match.group(2))


def units_compatible(a: str, b: str) -> bool:
    """Units agree, or at least one side has none."""
    return not a or not b or a == b


def extract_grade(s: str) -> str | None:
    """Extract a material grade token: 'SS 304L' -> '304l', 'ss304' -> '304'."""
    if not s:
        return None
    match = _GRADE_PATTERN.search(s)
    return match.group(1).lower() if match else None
