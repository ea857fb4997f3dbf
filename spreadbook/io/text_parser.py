"""
Free-text trade parser.
Handles pasted fills with varying delimiters, field order and date formats.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Union

import pandas as pd

from spreadbook.domain.models import Side, Trade, make_trade_id, to_epoch_millis
from spreadbook.domain.structures import normalize_structure_name
from spreadbook.io import classifier

logger = logging.getLogger(__name__)

MONTH_NAMES = [
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
]

TEXT_DATE_RE = re.compile(r"(\d{1,2})\s+(\w+),?\s+(\d{4})")
ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")
EURO_DATE_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{2,4})$")

SUBSECOND_RE = re.compile(r"^(\d{1,2}[.:·]\d{2}[.:·]\d{2})[.:·]\d+\s*$")
TIME_SEPARATOR_RE = re.compile(r"[.:·]")
LEADING_INT_RE = re.compile(r"^\s*([-+]?\d+)")
LEADING_FLOAT_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+))")

POSITIONAL_COLUMNS = 7
MIN_TOKENS = 4
ERROR_CONTENT_CHARS = 50


class TradeValidationError(ValueError):
    """Manual trade entry is missing a required field."""


@dataclass(frozen=True)
class ParseError:
    line: int
    content: str
    reason: str


@dataclass
class ParseResult:
    trades: List[Trade] = field(default_factory=list)
    errors: List[ParseError] = field(default_factory=list)


def _leading_int(value: Optional[str]) -> int:
    match = LEADING_INT_RE.match(value or "")
    return int(match.group(1)) if match else 0


def _leading_float(value: Optional[str]) -> float:
    match = LEADING_FLOAT_RE.match(value or "")
    return float(match.group(1)) if match else 0.0


def parse_side(value: Optional[str]) -> Optional[Side]:
    token = (value or "").strip()
    if classifier.BUY_RE.match(token):
        return Side.BUY
    if classifier.SELL_RE.match(token):
        return Side.SELL
    return None


def _calendar_date(year: int, month: int, day: int) -> Optional[datetime]:
    """datetime for a calendar day, or None when the day does not exist."""
    try:
        return datetime(year, month, day)
    except ValueError:
        return None


def parse_date(date_str: Optional[str]) -> Optional[datetime]:
    """
    Parse a date string, European day-first formats before any generic parse.

    Order: "16 June 2025" (optional weekday), ISO, D-M-YY(YY) with dash, slash
    or dot, then a generic parse. A string matching one of the explicit
    formats but naming a day that does not exist (31-02-25) gives None.
    Returns None when nothing applies.
    """
    if not date_str:
        return None
    cleaned = date_str.strip()

    match = TEXT_DATE_RE.search(cleaned)
    if match:
        day, month, year = match.groups()
        month_index = next(
            (i for i, name in enumerate(MONTH_NAMES) if name.startswith(month.lower())),
            None,
        )
        if month_index is not None:
            return _calendar_date(int(year), month_index + 1, int(day))

    match = ISO_DATE_RE.match(cleaned)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _calendar_date(year, month, day)

    match = EURO_DATE_RE.match(cleaned)
    if match:
        day, month, year = (int(g) for g in match.groups())
        if year < 100:
            year += 2000
        return _calendar_date(year, month, day)

    parsed = pd.to_datetime(cleaned, errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.to_pydatetime().replace(tzinfo=None)


def apply_time(time_str: Optional[str], date: Optional[datetime]) -> Optional[datetime]:
    """
    Set the time-of-day from text like 16:38:25, 16.38.25 or 15:11:15.718.
    A missing or malformed time leaves the date unchanged.
    """
    if not time_str or date is None:
        return date

    cleaned = SUBSECOND_RE.sub(r"\1", time_str.strip())
    parts = [_leading_int(p) for p in TIME_SEPARATOR_RE.split(cleaned)]
    if len(parts) < 2:
        return date

    hour, minute = parts[0], parts[1]
    second = parts[2] if len(parts) >= 3 else date.second
    if not (0 <= hour <= 23 and 0 <= minute <= 59 and 0 <= second <= 59):
        return date
    return date.replace(hour=hour, minute=minute, second=second)


def split_row(row: str) -> List[str]:
    """Tabs first, then runs of 2+ spaces, then commas."""
    parts = [p.strip() for p in row.split("\t") if p.strip()]
    if len(parts) < 3:
        parts = [p.strip() for p in re.split(r"\s{2,}", row) if p.strip()]
    if len(parts) < 3:
        parts = [p.strip() for p in row.split(",") if p.strip()]
    return parts


def _build_trade(
    date: datetime,
    time_str: str,
    exchange: str,
    structure: str,
    side: Side,
    quantity: int,
    price: float,
) -> Trade:
    timestamp = to_epoch_millis(date)
    return Trade(
        id=make_trade_id(timestamp),
        date=date,
        time=time_str,
        exchange=exchange,
        structure=normalize_structure_name(structure),
        original_structure=structure,
        side=side,
        quantity=quantity,
        price=price,
        timestamp=timestamp,
    )


class TradeRowParser:
    """Parse a single line into a Trade, or None."""

    @staticmethod
    def parse_row(row: Optional[str]) -> Optional[Trade]:
        if not row or not row.strip():
            return None

        parts = split_row(row)
        if len(parts) < MIN_TOKENS:
            return None

        fields: Dict[str, Union[str, int, float, Side, None]] = {
            classifier.DATE: None,
            classifier.TIME: None,
            classifier.EXCHANGE: None,
            classifier.STRUCTURE: None,
            classifier.SIDE: None,
            classifier.QUANTITY: None,
            classifier.PRICE: None,
        }
        structure_parts: List[str] = []

        for part in parts:
            detected = classifier.classify(part)
            if detected.type == classifier.STRUCTURE_PART:
                structure_parts.append(detected.value)
            elif detected.type in (classifier.STRUCTURE, classifier.PRICE):
                # Last one wins; the price usually comes after other numbers
                fields[detected.type] = detected.value
            elif detected.type in fields and fields[detected.type] is None:
                fields[detected.type] = detected.value

        structure = fields[classifier.STRUCTURE]
        if not structure and structure_parts:
            structure = " ".join(structure_parts)

        side = fields[classifier.SIDE]
        if not structure or side is None:
            return TradeRowParser.parse_positional(parts)

        date = parse_date(fields[classifier.DATE])
        if date is None:
            return None
        time_str = fields[classifier.TIME] or ""
        date = apply_time(time_str, date)

        quantity = fields[classifier.QUANTITY]
        if not quantity or quantity <= 0:
            quantity = 1

        return _build_trade(
            date=date,
            time_str=time_str,
            exchange=fields[classifier.EXCHANGE] or "UNKNOWN",
            structure=structure,
            side=side,
            quantity=quantity,
            price=fields[classifier.PRICE] or 0.0,
        )

    @staticmethod
    def parse_positional(parts: List[str]) -> Optional[Trade]:
        """Strict layout: date, time, exchange, structure, side, quantity, price."""
        if len(parts) < POSITIONAL_COLUMNS:
            return None

        date_str, time_str, exchange, structure, side_str, qty_str, price_str = parts[:POSITIONAL_COLUMNS]

        date = parse_date(date_str)
        if date is None:
            return None
        date = apply_time(time_str, date)

        side = parse_side(side_str)
        if side is None:
            return None

        quantity = _leading_int(qty_str)
        if quantity <= 0:
            return None

        return _build_trade(
            date=date,
            time_str=time_str,
            exchange=exchange.replace("*", "").strip() or "UNKNOWN",
            structure=structure,
            side=side,
            quantity=quantity,
            price=_leading_float(price_str),
        )


class TradeBatchParser:
    """Parse multi-line input, collecting per-line errors."""

    @staticmethod
    def parse(text: Optional[str]) -> ParseResult:
        result = ParseResult()
        if not text or not isinstance(text, str):
            return result

        lines = [line for line in text.split("\n") if line.strip()]
        for i, line in enumerate(lines, start=1):
            try:
                trade = TradeRowParser.parse_row(line)
            except (ValueError, OverflowError) as e:
                # Log and skip malformed rows
                logger.debug("Line %d failed: %s", i, e)
                result.errors.append(ParseError(i, line[:ERROR_CONTENT_CHARS], str(e)))
                continue

            if trade is None:
                logger.debug("Line %d could not be parsed: %r", i, line)
                result.errors.append(ParseError(i, line[:ERROR_CONTENT_CHARS], "Could not parse"))
            else:
                result.trades.append(trade)

        result.trades.sort(key=lambda t: t.timestamp)
        logger.info("Parsed %d trades, %d errors", len(result.trades), len(result.errors))
        return result


def parse_trades(text: Optional[str]) -> ParseResult:
    return TradeBatchParser.parse(text)


def create_manual_trade(
    structure: Optional[str],
    side: Optional[str],
    quantity,
    price=None,
    date: Union[datetime, str, None] = None,
    time: Optional[str] = None,
    exchange: Optional[str] = None,
) -> Trade:
    """
    Build a Trade from form fields.

    Raises:
        TradeValidationError: structure, side or quantity is missing
    """
    if not structure or not side or not quantity:
        raise TradeValidationError("Structure, side, and quantity are required")

    if isinstance(date, datetime):
        parsed_date = date
    else:
        parsed_date = parse_date(date) if date else None
        if parsed_date is None:
            parsed_date = datetime.now()

    if time:
        hours, _, rest = time.partition(":")
        parsed_date = parsed_date.replace(
            hour=min(max(_leading_int(hours), 0), 23),
            minute=min(max(_leading_int(rest), 0), 59),
        )

    normalized_side = Side.BUY if str(side).strip().upper() in ("BUY", "B") else Side.SELL
    qty = _leading_int(str(quantity)) or 1
    timestamp = to_epoch_millis(parsed_date)

    return Trade(
        id=make_trade_id(timestamp),
        date=parsed_date,
        time=time or parsed_date.strftime("%H:%M:%S"),
        exchange=exchange or "MANUAL",
        structure=normalize_structure_name(structure),
        original_structure=structure,
        side=normalized_side,
        quantity=qty,
        price=_leading_float(str(price)) if price is not None else 0.0,
        timestamp=timestamp,
    )
