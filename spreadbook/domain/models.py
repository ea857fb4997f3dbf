"""Domain value objects."""

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Deque, List, Optional


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class MatchType(str, Enum):
    CLOSE_LONG = "CLOSE_LONG"
    COVER_SHORT = "COVER_SHORT"


def make_trade_id(timestamp: int) -> str:
    """Trade id: epoch millis plus a random suffix."""
    return f"{timestamp}-{uuid.uuid4().hex[:9]}"


def to_epoch_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


@dataclass(frozen=True)
class Trade:
    """A single fill. Never mutated after creation."""
    id: str
    date: datetime  # local time, no timezone conversion
    exchange: str
    structure: str  # normalized, grouping key
    original_structure: str
    side: Side
    quantity: int
    price: float
    time: str = ""  # time-of-day text as found in input
    timestamp: int = 0  # epoch millis of `date`

    @property
    def date_str(self) -> str:
        return self.date.strftime("%Y-%m-%d")


@dataclass(frozen=True)
class StructureMetadata:
    """Derived from a normalized structure name."""
    full_name: str
    instrument: str = ""
    tenor: str = ""
    type: str = "Unknown"
    calendar_span: Optional[int] = None  # months: 3, 6, 9 or 12


@dataclass
class PositionQueueEntry:
    """An open (partially) unmatched trade resting in a FIFO queue."""
    trade: Trade
    quantity: int  # remaining, decremented as it gets matched
    original_qty: int
    entry_order: int  # 1-based index within the structure's trade list

    @property
    def price(self) -> float:
        return self.trade.price

    @property
    def side(self) -> Side:
        return self.trade.side

    @property
    def timestamp(self) -> int:
        return self.trade.timestamp

    def snapshot(self) -> "PositionQueueEntry":
        """Copy carrying the remaining quantity at this moment."""
        return PositionQueueEntry(
            trade=self.trade,
            quantity=self.quantity,
            original_qty=self.original_qty,
            entry_order=self.entry_order,
        )


@dataclass(frozen=True)
class Match:
    """A realized pairing of a resting entry against an opposing trade."""
    open_trade: PositionQueueEntry
    close_trade: Trade
    match_qty: int
    pnl: float  # price units
    pnl_dollars: float  # gross
    rt_cost: float
    net_pnl_dollars: float
    type: MatchType
    entry_order: int
    exit_order: int
    rt_legs_entry: float = 1
    rt_legs_total: float = 2

    @property
    def closed_at(self) -> int:
        return self.close_trade.timestamp

    @property
    def close_date(self) -> datetime:
        return self.close_trade.date


@dataclass
class StructureBook:
    """FIFO state and running totals for one structure. Derived, never persisted."""
    structure: str
    rt_legs: float = 1
    total_rt_legs_per_round_trip: float = 2

    # P&L in price units
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0  # open positions are not marked to market

    # P&L in dollars
    realized_pnl_dollars: float = 0.0
    gross_pnl_dollars: float = 0.0
    total_rt_cost: float = 0.0

    # Position info
    total_buy_qty: int = 0
    total_sell_qty: int = 0
    total_buy_cost: float = 0.0
    total_sell_proceeds: float = 0.0
    open_long_qty: int = 0
    open_short_qty: int = 0
    avg_long_price: float = 0.0
    avg_short_price: float = 0.0
    avg_buy_price: float = 0.0
    avg_sell_price: float = 0.0
    closed_qty: int = 0

    matches: List[Match] = field(default_factory=list)
    long_queue: Deque[PositionQueueEntry] = field(default_factory=deque)
    short_queue: Deque[PositionQueueEntry] = field(default_factory=deque)

    @property
    def net_position(self) -> int:
        return self.open_long_qty - self.open_short_qty
