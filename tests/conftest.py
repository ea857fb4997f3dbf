"""Test configuration and fixtures."""

from datetime import datetime

import pytest
from sqlmodel import Session
from sqlmodel.pool import StaticPool

from spreadbook.config import TradingConstants
from spreadbook.db.session import make_engine
from spreadbook.db.store import KeyValueStore
from spreadbook.domain.models import Side, Trade, make_trade_id, to_epoch_millis
from spreadbook.domain.structures import StructureCostTable


@pytest.fixture(name="session")
def session_fixture():
    """Create in-memory SQLite test database."""
    engine = make_engine("sqlite:///:memory:", poolclass=StaticPool)
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(session: Session):
    return KeyValueStore(session)


@pytest.fixture(name="constants")
def constants_fixture():
    return TradingConstants()


@pytest.fixture(name="cost_table")
def cost_table_fixture():
    return StructureCostTable()


@pytest.fixture(name="make_trade")
def make_trade_fixture():
    """Factory for trades; each call is one minute after the previous by default."""
    counter = {"n": 0}

    def _make(side, quantity, price, structure="SON Sep26 D-Fly", date=None):
        counter["n"] += 1
        date = date or datetime(2025, 6, 16, 10, counter["n"], 0)
        timestamp = to_epoch_millis(date)
        return Trade(
            id=make_trade_id(timestamp),
            date=date,
            time=date.strftime("%H:%M:%S"),
            exchange="ICE_L",
            structure=structure,
            original_structure=structure,
            side=Side(side),
            quantity=quantity,
            price=price,
            timestamp=timestamp,
        )

    return _make


@pytest.fixture(name="sample_text")
def sample_text_fixture():
    """Pasted fills in mixed layouts."""
    return "\n".join(
        [
            "16-6-25\t16:38:25\tICE_L\tSON Sep26 D-Fly\tB\t1\t-0.025",
            "16-6-25\t16:45:02\tICE_L*\tSON Sep26 D-fly\tS\t1\t-0.015",
            "",
            "17-6-25\t09:12:10.511\tICE_L\tSO3 Mar26–Jun26 Calendar\tSELL\t2\t0.035",
            "17-6-25\t10:01:44\tICE_L\tSO3 Mar26-Jun26 Calendar\tBUY\t2\t0.030",
        ]
    )
