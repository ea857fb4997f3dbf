"""
Token classification for free-text trade rows.

Each token is tested against an ordered list of rules; the first rule that
claims it decides its field type. Structure names are tested before dates and
times because they contain digit runs that look like either.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from spreadbook.domain.models import Side

DATE = "date"
TIME = "time"
EXCHANGE = "exchange"
SIDE = "side"
QUANTITY = "quantity"
PRICE = "price"
STRUCTURE = "structure"
STRUCTURE_PART = "structure_part"
UNKNOWN = "unknown"

NUMERIC_RE = re.compile(r"^-?\d+\.?\d*$")

BUY_RE = re.compile(r"^(B|BUY|BOUGHT|LONG)$", re.IGNORECASE)
SELL_RE = re.compile(r"^(S|SELL|SOLD|SHORT)$", re.IGNORECASE)

EXCHANGE_RE = re.compile(
    r"^(ICE[_\-]?[A-Z]*|CME[_\-]?[A-Z]*|NYMEX|COMEX|ASE|EUREX|[A-Z]{2,6}[_\-][A-Z]+)\*?$",
    re.IGNORECASE,
)

# More specific first: Fly Condor and 3 D-Fly before D-Fly / 3 Fly.
STRUCTURE_PATTERNS = [
    re.compile(r"SO3\s+\w+\d{2}[-–]\w+\d{2}\s+Calendar", re.IGNORECASE),
    re.compile(r"SO3\s+\w+\d{2}\s+3mo\s+Butterfly", re.IGNORECASE),
    re.compile(r"SO3\s+\w+\d{2}\s+3mo\s+Condor", re.IGNORECASE),
    re.compile(r"SON\s+\w+\d{2}\s+Fly\s+Condor", re.IGNORECASE),
    re.compile(r"SON\s+\w+\d{2}\s+3\s+D-?Fly", re.IGNORECASE),
    re.compile(r"SON\s+\w+\d{2}\s+3\s+Fly", re.IGNORECASE),
    re.compile(r"SON\s+\w+\d{2}\s+D-?Fly", re.IGNORECASE),
    # Outrights: SO3/SA3 with a single tenor, ER3
    re.compile(r"S[OA]3\s+\w+\d{2}(?!\s*[-–]\w+\d{2})", re.IGNORECASE),
    re.compile(r"ER3\s+\w+\d{2}", re.IGNORECASE),
]

NUMERIC_DATE_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})$")
DATE_PATTERNS = [
    # "Monday, 16 June, 2025"
    re.compile(r"\w+day,?\s+(\d{1,2})\s+(\w+),?\s+(\d{4})", re.IGNORECASE),
    # "16 June 2025"
    re.compile(r"(\d{1,2})\s+(\w+)\s+(\d{4})", re.IGNORECASE),
    # "2025-06-16"
    re.compile(r"(\d{4})-(\d{2})-(\d{2})"),
    # "16/06/2025"
    re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})"),
]

TIME_PREFIX_RE = re.compile(r"^\d{1,2}[.:]?\d{2}[.:]?\d{2}")
TIME_PATTERNS = [
    re.compile(r"(\d{1,2})[.:·](\d{2})[.:·](\d{2})(?:[.:·](\d+))?"),
    re.compile(r"(\d{1,2}):(\d{2}):(\d{2})"),
    re.compile(r"(\d{1,2}):(\d{2})"),
]

STRUCTURE_PART_RE = re.compile(r"^(SO3|SON|SA3|ER3|Calendar|Butterfly|Condor|Fly|D-?Fly)", re.IGNORECASE)

FieldValue = Union[str, float, Side]


@dataclass(frozen=True)
class Field:
    type: str
    value: FieldValue


def _numeric(token: str) -> Optional[Field]:
    if not NUMERIC_RE.match(token):
        return None
    num = float(token)
    # Quantities are small positive integers, anything else is a price
    if num.is_integer() and 0 < num < 1000:
        return Field(QUANTITY, int(num))
    return Field(PRICE, num)


def _side(token: str) -> Optional[Field]:
    if BUY_RE.match(token):
        return Field(SIDE, Side.BUY)
    if SELL_RE.match(token):
        return Field(SIDE, Side.SELL)
    return None


def _exchange(token: str) -> Optional[Field]:
    if EXCHANGE_RE.match(token):
        return Field(EXCHANGE, token.replace("*", ""))
    return None


def _structure(token: str) -> Optional[Field]:
    if any(p.search(token) for p in STRUCTURE_PATTERNS):
        return Field(STRUCTURE, token)
    return None


def _date(token: str) -> Optional[Field]:
    numeric = NUMERIC_DATE_RE.match(token)
    if numeric:
        # A dotted time such as 16.38.25 has the same shape; require a real month
        day, month = int(numeric.group(1)), int(numeric.group(2))
        if 1 <= month <= 12 and 1 <= day <= 31:
            return Field(DATE, token)
        return None
    if any(p.search(token) for p in DATE_PATTERNS):
        return Field(DATE, token)
    return None


def _time(token: str) -> Optional[Field]:
    if TIME_PREFIX_RE.match(token) or any(p.search(token) for p in TIME_PATTERNS):
        return Field(TIME, token)
    return None


def _structure_part(token: str) -> Optional[Field]:
    if STRUCTURE_PART_RE.match(token):
        return Field(STRUCTURE_PART, token)
    return None


# Evaluated top-down; first non-None result wins.
CLASSIFICATION_RULES: List[Tuple[str, Callable[[str], Optional[Field]]]] = [
    ("numeric", _numeric),
    (SIDE, _side),
    (EXCHANGE, _exchange),
    (STRUCTURE, _structure),
    (DATE, _date),
    (TIME, _time),
    (STRUCTURE_PART, _structure_part),
]


def classify(token: str) -> Field:
    """Classify a single delimited token into a semantic field type."""
    trimmed = token.strip()
    for _, rule in CLASSIFICATION_RULES:
        field = rule(trimmed)
        if field is not None:
            return field
    return Field(UNKNOWN, trimmed)
