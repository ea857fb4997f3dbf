"""Test portfolio-level analysis across structures."""

import math
from datetime import datetime

import pytest

from spreadbook.config import TradingConstants
from spreadbook.domain.portfolio import (
    advanced_metrics,
    all_matches,
    analyze_trades,
    daily_summary,
    performance_metrics,
    portfolio_stats,
    rank_structures,
)
from spreadbook.domain.structures import StructureCostTable

DFLY = "SON Sep26 D-Fly"
CAL = "SO3 Mar26-Jun26 Calendar"


@pytest.fixture(name="log")
def log_fixture(make_trade):
    """A winning D-Fly day and a losing calendar day, interleaved in the log."""
    return [
        make_trade("BUY", 1, -0.025, structure=DFLY, date=datetime(2025, 6, 16, 9, 0)),
        make_trade("SELL", 2, 0.035, structure=CAL, date=datetime(2025, 6, 16, 9, 30)),
        make_trade("SELL", 1, -0.015, structure=DFLY, date=datetime(2025, 6, 16, 11, 0)),
        make_trade("BUY", 2, 0.040, structure=CAL, date=datetime(2025, 6, 17, 10, 0)),
    ]


def test_analyze_groups_in_entry_order(log):
    results = analyze_trades(log)

    assert [r.name for r in results] == [DFLY, CAL]
    dfly, cal = results
    assert dfly.metadata.type == "D-Fly"
    assert cal.metadata.type == "3 Month Calendar"
    assert dfly.book.realized_pnl_dollars == pytest.approx(19.8)
    # Short 2 @ 0.035, covered @ 0.040: -1 tick x 2 lots, 1 leg each way
    assert cal.book.gross_pnl_dollars == pytest.approx(-33.0)
    assert cal.book.total_rt_cost == pytest.approx(6.6)
    assert cal.stats["losing_trades"] == 1


def test_analyze_uses_snapshot_and_constants(log):
    table = StructureCostTable(custom={DFLY: 1})
    constants = TradingConstants(cost_per_leg=1.0)

    results = analyze_trades(log, table, constants)
    table.add(DFLY, 10)

    assert results[0].book.rt_legs == 1
    assert results[0].matches[0].rt_cost == pytest.approx(2.0)
    assert results[0].stats["total_rt_legs"] == 2


def test_analyze_empty_log():
    results = analyze_trades([])

    assert results == []
    assert daily_summary(results).empty
    assert portfolio_stats(results)["best_performer"] is None


def test_all_matches_by_exit_order(log):
    matches = all_matches(analyze_trades(log))

    assert [m.close_trade.structure for m in matches] == [DFLY, CAL]
    assert [m.exit_order for m in matches] == [2, 2]


def test_rank_structures(log):
    ranked = rank_structures(analyze_trades(log))

    assert [r.name for r in ranked] == [DFLY, CAL]


def test_daily_summary(log):
    daily = daily_summary(analyze_trades(log))

    assert list(daily["date"]) == ["2025-06-16", "2025-06-17"]
    assert list(daily["trades"]) == [1, 1]
    assert list(daily["volume"]) == [1, 2]
    assert daily["pnl"].iloc[0] == pytest.approx(19.8)
    assert daily["pnl"].iloc[1] == pytest.approx(-39.6)
    assert daily["cumulative"].iloc[-1] == pytest.approx(19.8 - 39.6)


def test_portfolio_stats(log):
    stats = portfolio_stats(analyze_trades(log))

    assert stats["total_pnl"] == pytest.approx(19.8 - 39.6)
    assert stats["total_gross"] == pytest.approx(0.0, abs=1e-9)
    assert stats["total_rt"] == pytest.approx(13.2 + 6.6)
    assert stats["total_trades"] == 2
    assert stats["total_volume"] == 3
    assert stats["winning_structures"] == 1
    assert stats["losing_structures"] == 1
    assert stats["overall_win_rate"] == pytest.approx(50.0)
    assert stats["pnl_per_lot"] == pytest.approx((19.8 - 39.6) / 3)
    assert stats["best_performer"].name == DFLY
    assert stats["worst_performer"].name == CAL
    assert stats["pnl_by_type"]["D-Fly"]["count"] == 1
    assert stats["pnl_by_type"]["3 Month Calendar"]["pnl"] == pytest.approx(-39.6)


def test_performance_metrics(log):
    dfly, cal = analyze_trades(log)

    metrics = performance_metrics(dfly)
    assert metrics["rt_cost_ratio"] == pytest.approx(40.0)
    assert metrics["win_rate"] == pytest.approx(100.0)
    assert metrics["profit_factor"] == math.inf
    assert metrics["avg_win_loss_ratio"] == math.inf
    assert metrics["avg_trade_size"] == 1
    assert metrics["avg_hold_time_hours"] == pytest.approx(2.0)
    assert metrics["pnl_per_lot"] == pytest.approx(19.8)
    assert metrics["trading_days"] == 1

    metrics = performance_metrics(cal)
    assert metrics["rt_cost_ratio"] == 0
    assert metrics["avg_win_loss_ratio"] == 0
    assert metrics["trading_days"] == 2


def test_advanced_metrics(log):
    metrics = advanced_metrics(analyze_trades(log))

    assert metrics["max_drawdown"] == pytest.approx(39.6)
    assert metrics["max_drawdown_percent"] == pytest.approx(200.0)
    assert metrics["max_win_streak"] == 1
    assert metrics["current_streak"] == -1
    assert metrics["best"]["date"] == "2025-06-16"
    assert metrics["worst"]["date"] == "2025-06-17"
    assert metrics["profit_days"] == 1
    assert metrics["loss_days"] == 1
    assert metrics["expectancy"] == pytest.approx(0.5 * 19.8 - 0.5 * 39.6)
