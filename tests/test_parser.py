"""Test free-text trade parser."""

from datetime import datetime

import pytest

from spreadbook.domain.models import Side
from spreadbook.io.text_parser import (
    TradeBatchParser,
    TradeRowParser,
    TradeValidationError,
    apply_time,
    create_manual_trade,
    parse_date,
    parse_trades,
    split_row,
)


def test_parse_tab_row():
    trade = TradeRowParser.parse_row("16-6-25\t16:38:25\tICE_L\tSON Sep26 D-Fly\tB\t1\t-0.025")

    assert trade is not None
    assert trade.date == datetime(2025, 6, 16, 16, 38, 25)
    assert trade.date_str == "2025-06-16"
    assert trade.exchange == "ICE_L"
    assert trade.structure == "SON Sep26 D-Fly"
    assert trade.side == Side.BUY
    assert trade.quantity == 1
    assert trade.price == -0.025
    assert trade.timestamp == int(trade.date.timestamp() * 1000)
    assert trade.id.startswith(f"{trade.timestamp}-")


def test_parse_dotted_time_and_starred_exchange():
    trade = TradeRowParser.parse_row("16-6-25\t16.38.25\tICE_L*\tSO3 Mar26–Jun26 Calendar\tS\t2\t0.035")

    assert trade.date == datetime(2025, 6, 16, 16, 38, 25)
    assert trade.exchange == "ICE_L"
    assert trade.structure == "SO3 Mar26-Jun26 Calendar"
    assert trade.original_structure == "SO3 Mar26–Jun26 Calendar"
    assert trade.side == Side.SELL
    assert trade.quantity == 2
    assert trade.price == 0.035


def test_parse_time_with_milliseconds():
    trade = TradeRowParser.parse_row("1-7-25\t15:11:15.718\tICE_L\tSON Dec26 D-Fly\tBUY\t3\t0.01")

    assert trade.date == datetime(2025, 7, 1, 15, 11, 15)
    assert trade.time == "15:11:15.718"


def test_parse_reordered_space_delimited():
    trade = TradeRowParser.parse_row("B  2  SON Dec26 3 Fly  -0.01  ICE_L  2025-07-01  09:15")

    assert trade.date == datetime(2025, 7, 1, 9, 15)
    assert trade.structure == "SON Dec26 3 Fly"
    assert trade.side == Side.BUY
    assert trade.quantity == 2
    assert trade.price == -0.01


def test_parse_comma_delimited():
    trade = TradeRowParser.parse_row("2025-07-01,09:15,CME,SON Sep26 D-Fly,SELL,3,0.015")

    assert trade.exchange == "CME"
    assert trade.side == Side.SELL
    assert trade.quantity == 3
    assert trade.price == 0.015


def test_structure_rebuilt_from_fragments():
    trade = TradeRowParser.parse_row("16-6-25\t10:00:00\tICE_L\tSON Sep26\tD-fly\tB\t1\t-0.02")

    assert trade.structure == "SON Sep26 D-Fly"
    assert trade.original_structure == "SON Sep26 D-fly"


def test_defaults_when_fields_missing():
    trade = TradeRowParser.parse_row("16-6-25\tSON Sep26 D-Fly\tSELL\tnote")

    assert trade.exchange == "UNKNOWN"
    assert trade.quantity == 1
    assert trade.price == 0
    assert trade.date == datetime(2025, 6, 16)


def test_last_price_wins():
    trade = TradeRowParser.parse_row("16-6-25\t10:00\tSON Sep26 D-Fly\tB\t1\t-0.5\t0.025")

    assert trade.price == 0.025


def test_positional_fallback_for_unknown_structure():
    trade = TradeRowParser.parse_row("16-6-25\t10:00\tICE_L*\tXYZ Thing\tB\t4\t0.5")

    assert trade is not None
    assert trade.structure == "XYZ Thing"
    assert trade.exchange == "ICE_L"
    assert trade.quantity == 4
    assert trade.price == 0.5
    assert trade.date == datetime(2025, 6, 16, 10, 0)


def test_positional_fallback_rejects_zero_quantity():
    assert TradeRowParser.parse_row("16-6-25\t10:00\tICE_L\tXYZ Thing\tB\t0\t0.5") is None


def test_positional_fallback_needs_seven_columns():
    assert TradeRowParser.parse_row("16-6-25\t10:00\tXYZ Thing\tB\t1") is None


def test_unparseable_date_rejects_row():
    assert TradeRowParser.parse_row("notadate\t10:00\tICE_L\tSON Sep26 D-Fly\tB\t1\t0.5") is None


def test_too_few_tokens():
    assert TradeRowParser.parse_row("SON Sep26 D-Fly\tB\t1") is None
    assert TradeRowParser.parse_row("   ") is None


def test_split_row_cascade():
    assert split_row("a\tb\tc") == ["a", "b", "c"]
    assert split_row("a b  c   d") == ["a b", "c", "d"]
    assert split_row("a,b , c") == ["a", "b", "c"]


@pytest.mark.parametrize(
    "text,expected",
    [
        ("16 June 2025", datetime(2025, 6, 16)),
        ("Monday, 16 June, 2025", datetime(2025, 6, 16)),
        ("3 Sept 2025", datetime(2025, 9, 3)),
        ("2025-06-16", datetime(2025, 6, 16)),
        ("16-6-25", datetime(2025, 6, 16)),
        ("1/7/25", datetime(2025, 7, 1)),
        ("16.06.2025", datetime(2025, 6, 16)),
        ("23-10-25", datetime(2025, 10, 23)),
    ],
)
def test_parse_date_formats(text, expected):
    assert parse_date(text) == expected


def test_parse_date_failures():
    assert parse_date(None) is None
    assert parse_date("") is None
    assert parse_date("garbage") is None


def test_apply_time():
    base = datetime(2025, 6, 16)

    assert apply_time("16:38", base) == datetime(2025, 6, 16, 16, 38)
    assert apply_time("16·38·25", base) == datetime(2025, 6, 16, 16, 38, 25)
    assert apply_time(None, base) == base
    assert apply_time("25:00", base) == base
    assert apply_time("1638", base) == base


def test_batch_isolates_bad_lines():
    text = "\n".join(
        [
            "16-6-25\t16:38:25\tICE_L\tSON Sep26 D-Fly\tB\t1\t-0.025",
            "this line is garbage",
            "16-6-25\t16:40:00\tICE_L\tSON Sep26 D-Fly\tS\t1\t-0.020",
        ]
    )
    result = parse_trades(text)

    assert len(result.trades) == 2
    assert len(result.errors) == 1
    assert result.errors[0].line == 2
    assert result.errors[0].content == "this line is garbage"
    assert result.errors[0].reason == "Could not parse"


def test_batch_sorts_by_timestamp_and_truncates_errors():
    long_garbage = "x" * 80
    text = "\n".join(
        [
            "17-6-25\t09:00:00\tICE_L\tSON Sep26 D-Fly\tS\t1\t-0.020",
            long_garbage,
            "16-6-25\t09:00:00\tICE_L\tSON Sep26 D-Fly\tB\t1\t-0.025",
        ]
    )
    result = TradeBatchParser.parse(text)

    assert [t.date_str for t in result.trades] == ["2025-06-16", "2025-06-17"]
    assert len(result.errors[0].content) == 50


def test_batch_sample_text(sample_text):
    result = parse_trades(sample_text)

    assert len(result.trades) == 4
    assert result.errors == []
    assert {t.structure for t in result.trades} == {"SON Sep26 D-Fly", "SO3 Mar26-Jun26 Calendar"}


def test_batch_empty_input():
    assert parse_trades("").trades == []
    assert parse_trades(None).errors == []


def test_manual_trade_requires_fields():
    with pytest.raises(TradeValidationError):
        create_manual_trade(structure="", side="BUY", quantity=1)
    with pytest.raises(TradeValidationError):
        create_manual_trade(structure="SON Sep26 D-Fly", side=None, quantity=1)
    with pytest.raises(TradeValidationError):
        create_manual_trade(structure="SON Sep26 D-Fly", side="BUY", quantity=0)


def test_manual_trade_defaults():
    trade = create_manual_trade(
        structure="SON Sep26 d fly",
        side="b",
        quantity="3",
        price="-0.015",
        date="2025-06-16",
        time="14:05",
    )

    assert trade.exchange == "MANUAL"
    assert trade.structure == "SON Sep26 D-Fly"
    assert trade.side == Side.BUY
    assert trade.quantity == 3
    assert trade.price == -0.015
    assert trade.date == datetime(2025, 6, 16, 14, 5)


def test_manual_trade_bad_date_uses_now():
    before = datetime.now()
    trade = create_manual_trade(structure="SA3 Dec25", side="SELL", quantity=1, date="garbage")

    assert trade.date >= before.replace(microsecond=0)
    assert trade.side == Side.SELL
    assert trade.price == 0


@pytest.mark.parametrize("text", ["31-02-25", "31-4-25", "2025-02-30", "30 February 2025", "29/02/2025"])
def test_parse_date_impossible_day(text):
    assert parse_date(text) is None


def test_parse_date_leap_day():
    assert parse_date("29-2-24") == datetime(2024, 2, 29)


def test_impossible_date_rejects_row():
    assert TradeRowParser.parse_row("31-4-25\t10:00\tICE_L\tSON Sep26 D-Fly\tB\t1\t0.5") is None


def test_batch_reports_impossible_date_as_unparsed():
    result = parse_trades("31-4-25\t10:00\tICE_L\tSON Sep26 D-Fly\tB\t1\t0.5")

    assert result.trades == []
    assert result.errors[0].reason == "Could not parse"


def test_manual_trade_impossible_date_uses_now():
    before = datetime.now()
    trade = create_manual_trade(structure="SON Sep26 D-Fly", side="BUY", quantity=1, date="30-02-2025")

    assert trade.date >= before.replace(microsecond=0)
