"""Trading statistics derived from FIFO match history."""

import math
from typing import Dict, List, Optional, Sequence

from spreadbook.config import TradingConstants
from spreadbook.domain.fifo import daily_pnl
from spreadbook.domain.models import Match, MatchType

SORTINO_ALL_RETURNS = "all"
SORTINO_NEGATIVE_RETURNS = "negative"


def _empty_tick_capture() -> Dict:
    return {
        "avg_ticks_won": 0.0,
        "avg_ticks_lost": 0.0,
        "distribution": {},
        "wins_by_ticks": {},
        "losses_by_ticks": {},
        "top3": [],
    }


def empty_stats() -> Dict:
    return {
        "total_trades": 0,
        "winning_trades": 0,
        "losing_trades": 0,
        "scratch_trades": 0,
        "win_rate": 0.0,
        "scratch_rate": 0.0,
        "avg_win": 0.0,
        "avg_loss": 0.0,
        "avg_win_dollars": 0.0,
        "avg_loss_dollars": 0.0,
        "max_win": 0.0,
        "max_loss": 0.0,
        "max_win_dollars": 0.0,
        "max_loss_dollars": 0.0,
        "profit_factor": 0.0,
        "total_lots": 0,
        "total_rt_legs": 0,
        "tick_capture": _empty_tick_capture(),
        "sharpe_ratio": 0.0,
        "sortino_ratio": 0.0,
        "max_drawdown": 0.0,
        "max_drawdown_percent": 0.0,
        "current_streak": 0,
        "max_win_streak": 0,
        "max_loss_streak": 0,
        "expectancy": 0.0,
    }


def compute_stats(matches: Sequence[Match], constants: Optional[TradingConstants] = None) -> Dict:
    """
    Win/loss/scratch statistics for a list of matches.

    Classification uses GROSS dollars: a scratch (same entry and exit price)
    still pays RT cost but counts as neither a win nor a loss, and is left
    out of the win-rate denominator.
    """
    constants = constants or TradingConstants()
    if not matches:
        return empty_stats()

    wins = [m for m in matches if m.pnl_dollars > 0]
    losses = [m for m in matches if m.pnl_dollars < 0]
    scratches = [m for m in matches if m.pnl_dollars == 0]

    total_wins = sum(m.pnl for m in wins)
    total_losses = abs(sum(m.pnl for m in losses))
    total_wins_dollars = sum(m.net_pnl_dollars for m in wins)
    total_losses_dollars = abs(sum(m.net_pnl_dollars for m in losses))

    total_rt_cost = sum(m.rt_cost for m in matches)
    decisive = len(wins) + len(losses)

    if total_losses_dollars > 0:
        profit_factor = total_wins_dollars / total_losses_dollars
    else:
        profit_factor = math.inf if total_wins_dollars > 0 else 0.0

    stats = {
        "total_trades": len(matches),
        "winning_trades": len(wins),
        "losing_trades": len(losses),
        "scratch_trades": len(scratches),
        "win_rate": len(wins) / decisive * 100 if decisive else 0.0,
        "scratch_rate": len(scratches) / len(matches) * 100,
        "avg_win": total_wins / len(wins) if wins else 0.0,
        "avg_loss": total_losses / len(losses) if losses else 0.0,
        "avg_win_dollars": total_wins_dollars / len(wins) if wins else 0.0,
        "avg_loss_dollars": total_losses_dollars / len(losses) if losses else 0.0,
        "max_win": max(m.pnl for m in wins) if wins else 0.0,
        "max_loss": min(m.pnl for m in losses) if losses else 0.0,
        "max_win_dollars": max(m.net_pnl_dollars for m in wins) if wins else 0.0,
        "max_loss_dollars": min(m.net_pnl_dollars for m in losses) if losses else 0.0,
        "profit_factor": profit_factor,
        "total_lots": sum(m.match_qty for m in matches),
        "total_rt_legs": _round_half_up(total_rt_cost / constants.cost_per_leg) if constants.cost_per_leg else 0,
        "tick_capture": tick_capture(wins, losses, constants.tick_size),
    }

    returns = [m.net_pnl_dollars for m in matches]
    stats["sharpe_ratio"] = sharpe_ratio(returns)
    stats["sortino_ratio"] = sortino_ratio(returns)
    stats.update(max_drawdown(daily_pnl(list(matches))["pnl_dollars"].tolist()))
    stats.update(streaks(sorted(matches, key=lambda m: m.exit_order)))
    stats["expectancy"] = expectancy(matches)
    return stats


def _ticks_from_match(match: Match, tick_size: float) -> float:
    """Gross price movement in ticks, not quantity-weighted."""
    entry_price = match.open_trade.price
    exit_price = match.close_trade.price
    if match.type == MatchType.CLOSE_LONG:
        return (exit_price - entry_price) / tick_size
    return (entry_price - exit_price) / tick_size


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _bucket(ticks: int) -> str:
    return "5+" if ticks >= 5 else str(ticks)


def tick_capture(wins: Sequence[Match], losses: Sequence[Match], tick_size: float) -> Dict:
    """Distribution of ticks captured on wins and given up on losses."""
    if not wins and not losses:
        return _empty_tick_capture()

    win_ticks = [(_round_half_up(_ticks_from_match(m, tick_size)), m.pnl_dollars) for m in wins]
    loss_ticks = [(abs(_round_half_up(_ticks_from_match(m, tick_size))), abs(m.pnl_dollars)) for m in losses]

    wins_by_ticks: Dict[str, Dict] = {}
    for ticks, gross in win_ticks:
        bucket = wins_by_ticks.setdefault(_bucket(ticks), {"count": 0, "total_gross_pnl": 0.0})
        bucket["count"] += 1
        bucket["total_gross_pnl"] += gross

    losses_by_ticks: Dict[str, Dict] = {}
    for ticks, gross in loss_ticks:
        bucket = losses_by_ticks.setdefault(_bucket(ticks), {"count": 0, "total_gross_pnl": 0.0})
        bucket["count"] += 1
        bucket["total_gross_pnl"] += gross

    distribution = {
        ticks: {
            "count": data["count"],
            "percent": data["count"] / len(wins) * 100,
            "total_gross_pnl": data["total_gross_pnl"],
            "avg_gross_pnl": data["total_gross_pnl"] / data["count"],
        }
        for ticks, data in wins_by_ticks.items()
    }

    top3 = [
        {"ticks": ticks, "count": data["count"], "percent": data["percent"]}
        for ticks, data in sorted(distribution.items(), key=lambda kv: kv[1]["percent"], reverse=True)[:3]
    ]

    return {
        "avg_ticks_won": sum(t for t, _ in win_ticks) / len(wins) if wins else 0.0,
        "avg_ticks_lost": sum(t for t, _ in loss_ticks) / len(losses) if losses else 0.0,
        "distribution": distribution,
        "wins_by_ticks": wins_by_ticks,
        "losses_by_ticks": losses_by_ticks,
        "top3": top3,
    }


def sharpe_ratio(returns: Sequence[float]) -> float:
    """Mean / population std dev of per-match returns, zero risk-free rate."""
    if len(returns) < 2:
        return 0.0
    mean = sum(returns) / len(returns)
    variance = sum((r - mean) ** 2 for r in returns) / len(returns)
    std_dev = math.sqrt(variance)
    if std_dev == 0:
        return math.inf if mean > 0 else 0.0
    return mean / std_dev


def sortino_ratio(returns: Sequence[float], denominator: str = SORTINO_ALL_RETURNS) -> float:
    """
    Mean / downside deviation, minimum acceptable return of 0.

    The downside variance averages squared negative returns over either all
    returns ("all") or the negative returns only ("negative").
    """
    if len(returns) < 2:
        return 0.0
    if denominator not in (SORTINO_ALL_RETURNS, SORTINO_NEGATIVE_RETURNS):
        raise ValueError(f"Unknown Sortino denominator: {denominator}")

    mean = sum(returns) / len(returns)
    negative = [r for r in returns if r < 0]
    if not negative:
        return math.inf if mean > 0 else 0.0

    count = len(returns) if denominator == SORTINO_ALL_RETURNS else len(negative)
    downside_dev = math.sqrt(sum(r ** 2 for r in negative) / count)
    if downside_dev == 0:
        return math.inf if mean > 0 else 0.0
    return mean / downside_dev


def max_drawdown(daily_pnls: Sequence[float]) -> Dict[str, float]:
    """Largest peak-to-trough drop of cumulative daily P&L, in dollars and % of peak."""
    peak = 0.0
    cumulative = 0.0
    max_dd = 0.0
    for pnl in daily_pnls:
        cumulative += pnl
        peak = max(peak, cumulative)
        max_dd = max(max_dd, peak - cumulative)
    return {
        "max_drawdown": max_dd,
        "max_drawdown_percent": max_dd / peak * 100 if peak > 0 else 0.0,
    }


def streaks(matches: Sequence[Match]) -> Dict[str, int]:
    """
    Consecutive win/loss runs over matches in the given order.
    A match is a win when its net dollars are positive, otherwise a loss.
    """
    if not matches:
        return {"current_streak": 0, "max_win_streak": 0, "max_loss_streak": 0}

    win_streak = loss_streak = 0
    max_win_streak = max_loss_streak = 0
    for match in matches:
        if match.net_pnl_dollars > 0:
            win_streak += 1
            loss_streak = 0
            max_win_streak = max(max_win_streak, win_streak)
        else:
            loss_streak += 1
            win_streak = 0
            max_loss_streak = max(max_loss_streak, loss_streak)

    return {
        "current_streak": win_streak if matches[-1].net_pnl_dollars > 0 else -loss_streak,
        "max_win_streak": max_win_streak,
        "max_loss_streak": max_loss_streak,
    }


def expectancy(matches: Sequence[Match]) -> float:
    """(win% x avg win) - (loss% x avg loss) over all matches, net dollars."""
    if not matches:
        return 0.0
    wins = [m.net_pnl_dollars for m in matches if m.net_pnl_dollars > 0]
    losses = [m.net_pnl_dollars for m in matches if m.net_pnl_dollars < 0]
    win_rate = len(wins) / len(matches)
    loss_rate = len(losses) / len(matches)
    avg_win = sum(wins) / len(wins) if wins else 0.0
    avg_loss = abs(sum(losses) / len(losses)) if losses else 0.0
    return win_rate * avg_win - loss_rate * avg_loss


def analyze_days(daily_pnls: List[Dict]) -> Dict:
    """Best/worst/average day from rows carrying a "pnl" key."""
    if not daily_pnls:
        return {"best": None, "worst": None, "avg_day": 0.0, "profit_days": 0, "loss_days": 0}
    ordered = sorted(daily_pnls, key=lambda d: d["pnl"], reverse=True)
    total = sum(d["pnl"] for d in daily_pnls)
    return {
        "best": ordered[0],
        "worst": ordered[-1],
        "avg_day": total / len(daily_pnls),
        "profit_days": len([d for d in daily_pnls if d["pnl"] > 0]),
        "loss_days": len([d for d in daily_pnls if d["pnl"] < 0]),
    }
