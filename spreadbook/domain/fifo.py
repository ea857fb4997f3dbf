"""
FIFO P&L matching for a single structure.

Trades are matched in ENTRY ORDER (list position), not by timestamp: the
order a trader logged fills is taken as the order positions were opened.
Do not sort the input by time before calling the matcher.
"""

from collections import deque
from typing import Deque, Iterable, List, Optional

import pandas as pd

from spreadbook.config import TradingConstants
from spreadbook.domain.models import (
    Match,
    MatchType,
    PositionQueueEntry,
    Side,
    StructureBook,
    Trade,
)
from spreadbook.domain.structures import DEFAULT_RT_LEGS, StructureCostTable


class FIFOMatcher:
    """Matches buys against sells oldest-first and prices each match."""

    def __init__(
        self,
        cost_table: Optional[StructureCostTable] = None,
        constants: Optional[TradingConstants] = None,
    ):
        self.cost_table = cost_table if cost_table is not None else StructureCostTable()
        self.constants = constants if constants is not None else TradingConstants()

    def compute(self, trades: Iterable[Trade], structure_name: str = "") -> StructureBook:
        """
        Compute realized P&L, open queues and match history.

        Args:
            trades: One structure's trades, in entry order
            structure_name: Name used for the RT legs lookup

        Returns:
            StructureBook with matches in creation order
        """
        rt_legs = self.cost_table.legs_for(structure_name) if structure_name else DEFAULT_RT_LEGS
        book = StructureBook(
            structure=structure_name,
            rt_legs=rt_legs,
            total_rt_legs_per_round_trip=rt_legs * 2,
        )

        entry_index = 0
        for trade in trades:
            entry_index += 1
            if trade.side == Side.BUY:
                book.total_buy_qty += trade.quantity
                book.total_buy_cost += trade.quantity * trade.price
                remaining = self._match_against(
                    book, book.short_queue, trade, entry_index, MatchType.COVER_SHORT
                )
                resting = book.long_queue
            else:
                book.total_sell_qty += trade.quantity
                book.total_sell_proceeds += trade.quantity * trade.price
                remaining = self._match_against(
                    book, book.long_queue, trade, entry_index, MatchType.CLOSE_LONG
                )
                resting = book.short_queue

            # Leftover opens a new position
            if remaining > 0:
                resting.append(
                    PositionQueueEntry(
                        trade=trade,
                        quantity=remaining,
                        original_qty=trade.quantity,
                        entry_order=entry_index,
                    )
                )

        self._finalize(book)
        return book

    def _match_against(
        self,
        book: StructureBook,
        queue: Deque[PositionQueueEntry],
        trade: Trade,
        entry_index: int,
        match_type: MatchType,
    ) -> int:
        """Consume the opposing queue oldest-first. Returns the unmatched quantity."""
        remaining = trade.quantity
        while remaining > 0 and queue:
            oldest = queue[0]
            matched = min(remaining, oldest.quantity)

            pnl = self._compute_realized_pnl(match_type, oldest.price, trade.price, matched)
            gross_dollars = self.constants.price_pnl_to_dollars(pnl)
            rt_cost = self.constants.rt_cost(matched, book.rt_legs)
            net_dollars = gross_dollars - rt_cost

            book.realized_pnl += pnl
            book.gross_pnl_dollars += gross_dollars
            book.total_rt_cost += rt_cost
            book.realized_pnl_dollars += net_dollars

            book.matches.append(
                Match(
                    open_trade=oldest.snapshot(),
                    close_trade=trade,
                    match_qty=matched,
                    pnl=pnl,
                    pnl_dollars=gross_dollars,
                    rt_cost=rt_cost,
                    net_pnl_dollars=net_dollars,
                    type=match_type,
                    entry_order=oldest.entry_order,
                    exit_order=entry_index,
                    rt_legs_entry=book.rt_legs,
                    rt_legs_total=book.total_rt_legs_per_round_trip,
                )
            )

            remaining -= matched
            oldest.quantity -= matched
            if oldest.quantity == 0:
                queue.popleft()

        return remaining

    @staticmethod
    def _compute_realized_pnl(match_type: MatchType, open_price: float, close_price: float, qty: int) -> float:
        """Price-unit P&L for a matched lot."""
        if match_type == MatchType.CLOSE_LONG:
            return (close_price - open_price) * qty
        return (open_price - close_price) * qty

    @staticmethod
    def _finalize(book: StructureBook) -> None:
        book.open_long_qty = sum(e.quantity for e in book.long_queue)
        book.open_short_qty = sum(e.quantity for e in book.short_queue)

        if book.open_long_qty > 0:
            book.avg_long_price = sum(e.price * e.quantity for e in book.long_queue) / book.open_long_qty
        if book.open_short_qty > 0:
            book.avg_short_price = sum(e.price * e.quantity for e in book.short_queue) / book.open_short_qty
        if book.total_buy_qty > 0:
            book.avg_buy_price = book.total_buy_cost / book.total_buy_qty
        if book.total_sell_qty > 0:
            book.avg_sell_price = book.total_sell_proceeds / book.total_sell_qty

        book.closed_qty = sum(m.match_qty for m in book.matches)
        book.unrealized_pnl = 0.0


def compute_fifo(
    trades: Iterable[Trade],
    structure_name: str = "",
    cost_table: Optional[StructureCostTable] = None,
    constants: Optional[TradingConstants] = None,
) -> StructureBook:
    return FIFOMatcher(cost_table, constants).compute(trades, structure_name)


def cumulative_pnl(matches: List[Match]) -> pd.DataFrame:
    """
    Running P&L per match, ordered by exit order.

    Returns DataFrame with columns: index, date, timestamp, pnl, pnl_dollars,
    cumulative, cumulative_dollars, type
    """
    columns = ["index", "date", "timestamp", "pnl", "pnl_dollars", "cumulative", "cumulative_dollars", "type"]
    if not matches:
        return pd.DataFrame(columns=columns)

    ordered = sorted(matches, key=lambda m: m.exit_order)
    rows = []
    cumulative = 0.0
    cumulative_dollars = 0.0
    for idx, match in enumerate(ordered, start=1):
        cumulative += match.pnl
        cumulative_dollars += match.net_pnl_dollars
        rows.append(
            {
                "index": idx,
                "date": match.close_date,
                "timestamp": match.closed_at,
                "pnl": match.pnl,
                "pnl_dollars": match.net_pnl_dollars,
                "cumulative": cumulative,
                "cumulative_dollars": cumulative_dollars,
                "type": match.type.value,
            }
        )
    return pd.DataFrame(rows, columns=columns)


def daily_pnl(matches: List[Match]) -> pd.DataFrame:
    """
    P&L aggregated by close date.

    Returns DataFrame with columns: date, pnl, pnl_dollars, rt_cost, trades,
    cumulative, cumulative_dollars
    """
    columns = ["date", "pnl", "pnl_dollars", "rt_cost", "trades", "cumulative", "cumulative_dollars"]
    if not matches:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(
        [
            {
                "date": m.close_date.strftime("%Y-%m-%d"),
                "pnl": m.pnl,
                "pnl_dollars": m.net_pnl_dollars,
                "rt_cost": m.rt_cost,
            }
            for m in matches
        ]
    )
    out = (
        df.groupby("date", as_index=False)
        .agg(
            pnl=("pnl", "sum"),
            pnl_dollars=("pnl_dollars", "sum"),
            rt_cost=("rt_cost", "sum"),
            trades=("pnl", "count"),
        )
        .sort_values("date")
        .reset_index(drop=True)
    )
    out["cumulative"] = out["pnl"].cumsum()
    out["cumulative_dollars"] = out["pnl_dollars"].cumsum()
    return out[columns]
