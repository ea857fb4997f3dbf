"""
Portfolio-level analysis: group trades, run FIFO per structure, aggregate.
Everything here is recomputed from the trade log on each call.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from spreadbook.config import TradingConstants
from spreadbook.domain.fifo import FIFOMatcher
from spreadbook.domain.metrics import (
    analyze_days,
    compute_stats,
    expectancy,
    max_drawdown,
    sharpe_ratio,
    sortino_ratio,
    streaks,
)
from spreadbook.domain.models import Match, StructureBook, StructureMetadata, Trade
from spreadbook.domain.structures import StructureCostTable, group_trades_by_structure

logger = logging.getLogger(__name__)

MILLIS_PER_HOUR = 1000 * 60 * 60


@dataclass
class StructureResult:
    """One structure's trades, FIFO book and statistics."""
    name: str
    metadata: StructureMetadata
    trades: List[Trade]
    book: StructureBook
    stats: Dict = field(default_factory=dict)

    @property
    def matches(self) -> List[Match]:
        return self.book.matches


def analyze_trades(
    trades: Iterable[Trade],
    cost_table: Optional[StructureCostTable] = None,
    constants: Optional[TradingConstants] = None,
) -> List[StructureResult]:
    """
    Run the full pipeline over a trade log.

    The cost table is snapshotted and the constants held fixed for the whole
    computation. Trades must be in entry order.
    """
    table = (cost_table or StructureCostTable()).snapshot()
    constants = constants or TradingConstants()
    matcher = FIFOMatcher(table, constants)

    results = []
    for name, group in group_trades_by_structure(trades).items():
        book = matcher.compute(group.trades, name)
        results.append(
            StructureResult(
                name=name,
                metadata=group.metadata,
                trades=group.trades,
                book=book,
                stats=compute_stats(book.matches, constants),
            )
        )
    logger.debug("Analyzed %d structures", len(results))
    return results


def all_matches(results: Iterable[StructureResult]) -> List[Match]:
    """Matches across structures ordered by exit order."""
    matches = [m for r in results for m in r.matches]
    return sorted(matches, key=lambda m: m.exit_order)


def rank_structures(results: Iterable[StructureResult]) -> List[StructureResult]:
    """Net dollar P&L descending, then win rate descending."""
    return sorted(
        results,
        key=lambda r: (r.book.realized_pnl_dollars, r.stats.get("win_rate", 0.0)),
        reverse=True,
    )


def daily_summary(results: Iterable[StructureResult]) -> pd.DataFrame:
    """
    Net P&L per close date across all structures.

    Returns DataFrame with columns: date, pnl, trades, volume, rt_cost, cumulative
    """
    columns = ["date", "pnl", "trades", "volume", "rt_cost", "cumulative"]
    rows = [
        {
            "date": m.close_date.strftime("%Y-%m-%d"),
            "pnl": m.net_pnl_dollars,
            "volume": m.match_qty,
            "rt_cost": m.rt_cost,
        }
        for r in results
        for m in r.matches
    ]
    if not rows:
        return pd.DataFrame(columns=columns)

    out = (
        pd.DataFrame(rows)
        .groupby("date", as_index=False)
        .agg(
            pnl=("pnl", "sum"),
            trades=("pnl", "count"),
            volume=("volume", "sum"),
            rt_cost=("rt_cost", "sum"),
        )
        .sort_values("date")
        .reset_index(drop=True)
    )
    out["cumulative"] = out["pnl"].cumsum()
    return out[columns]


def portfolio_stats(results: List[StructureResult]) -> Dict:
    """Overall statistics across every structure."""
    total_pnl = sum(r.book.realized_pnl_dollars for r in results)
    total_gross = sum(r.book.gross_pnl_dollars for r in results)
    total_rt = sum(r.book.total_rt_cost for r in results)
    total_trades = sum(len(r.matches) for r in results)
    total_volume = sum(r.book.closed_qty for r in results)

    matches = [m for r in results for m in r.matches]
    winning_trades = len([m for m in matches if m.net_pnl_dollars > 0])

    ranked = rank_structures(results)

    pnl_by_type: Dict[str, Dict] = {}
    for r in results:
        entry = pnl_by_type.setdefault(r.metadata.type or "Unknown", {"pnl": 0.0, "count": 0, "trades": 0})
        entry["pnl"] += r.book.realized_pnl_dollars
        entry["count"] += 1
        entry["trades"] += len(r.matches)

    return {
        "total_pnl": total_pnl,
        "total_gross": total_gross,
        "total_rt": total_rt,
        "rt_cost_ratio": total_rt / total_gross * 100 if total_gross > 0 else 0.0,
        "total_trades": total_trades,
        "total_volume": total_volume,
        "winning_structures": len([r for r in results if r.book.realized_pnl_dollars > 0]),
        "losing_structures": len([r for r in results if r.book.realized_pnl_dollars < 0]),
        "overall_win_rate": winning_trades / len(matches) * 100 if matches else 0.0,
        "pnl_per_trade": total_pnl / total_trades if total_trades else 0.0,
        "pnl_per_lot": total_pnl / total_volume if total_volume else 0.0,
        "best_performer": ranked[0] if ranked else None,
        "worst_performer": ranked[-1] if ranked else None,
        "pnl_by_type": pnl_by_type,
    }


def performance_metrics(result: StructureResult) -> Dict:
    """Efficiency, risk and activity figures for one structure."""
    book = result.book
    stats = result.stats
    matches = result.matches
    lots = sum(m.match_qty for m in matches)

    avg_win = stats.get("avg_win_dollars", 0.0)
    avg_loss = stats.get("avg_loss_dollars", 0.0)
    if avg_loss > 0:
        avg_win_loss_ratio = avg_win / avg_loss
    else:
        avg_win_loss_ratio = float("inf") if avg_win > 0 else 0.0

    return {
        "rt_cost_ratio": book.total_rt_cost / book.gross_pnl_dollars * 100 if book.gross_pnl_dollars > 0 else 0.0,
        "win_rate": stats.get("win_rate", 0.0),
        "profit_factor": stats.get("profit_factor", 0.0),
        "avg_win_loss_ratio": avg_win_loss_ratio,
        "avg_trade_size": lots / len(matches) if matches else 0.0,
        "avg_hold_time_hours": (
            sum(m.closed_at - m.open_trade.timestamp for m in matches) / len(matches) / MILLIS_PER_HOUR
            if matches else 0.0
        ),
        "pnl_per_lot": book.realized_pnl_dollars / lots if lots else 0.0,
        "total_trades": len(matches),
        "trading_days": len({t.date_str for t in result.trades}),
    }


def advanced_metrics(results: List[StructureResult]) -> Dict:
    """Sharpe, Sortino, drawdown, streaks, expectancy and day analysis for the portfolio."""
    matches = all_matches(results)
    returns = [m.net_pnl_dollars for m in matches]
    daily = daily_summary(results)

    metrics = {
        "sharpe_ratio": sharpe_ratio(returns),
        "sortino_ratio": sortino_ratio(returns),
        "expectancy": expectancy(matches),
    }
    metrics.update(max_drawdown(daily["pnl"].tolist()))
    metrics.update(streaks(matches))
    metrics.update(analyze_days(daily.to_dict("records")))
    return metrics
