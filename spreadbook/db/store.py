"""Key-value persistence and trade log serialization."""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlmodel import Session

from spreadbook.db.models import Setting
from spreadbook.domain.models import Side, Trade, to_epoch_millis

logger = logging.getLogger(__name__)

TRADES_KEY = "trades"


class KeyValueStore:
    """JSON blobs keyed by name, backed by the `setting` table."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, key: str, default: Any = None) -> Any:
        row = self.session.get(Setting, key)
        if row is None:
            return default
        try:
            return json.loads(row.value)
        except ValueError as e:
            logger.error("Failed to decode %s: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        row = self.session.get(Setting, key)
        if row is None:
            row = Setting(key=key, value=payload)
        else:
            row.value = payload
            row.updated_at = datetime.utcnow()
        self.session.add(row)
        self.session.commit()

    def delete(self, key: str) -> None:
        row = self.session.get(Setting, key)
        if row is not None:
            self.session.delete(row)
            self.session.commit()


def trade_to_dict(trade: Trade) -> Dict[str, Any]:
    return {
        "id": trade.id,
        "date": trade.date.isoformat(),
        "time": trade.time,
        "exchange": trade.exchange,
        "structure": trade.structure,
        "original_structure": trade.original_structure,
        "side": trade.side.value,
        "quantity": trade.quantity,
        "price": trade.price,
    }


def trade_from_dict(data: Dict[str, Any]) -> Trade:
    date = datetime.fromisoformat(data["date"])
    return Trade(
        id=data["id"],
        date=date,
        time=data.get("time", ""),
        exchange=data.get("exchange", "UNKNOWN"),
        structure=data["structure"],
        original_structure=data.get("original_structure", data["structure"]),
        side=Side(data["side"]),
        quantity=int(data["quantity"]),
        price=float(data.get("price", 0.0)),
        timestamp=to_epoch_millis(date),
    )


def save_trades(store: KeyValueStore, trades: List[Trade]) -> None:
    """Persist the trade log in entry order; an empty log clears the key."""
    if not trades:
        store.delete(TRADES_KEY)
        return
    store.set(TRADES_KEY, [trade_to_dict(t) for t in trades])


def load_trades(store: KeyValueStore) -> List[Trade]:
    trades = []
    for item in store.get(TRADES_KEY, []) or []:
        try:
            trades.append(trade_from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Skipping stored trade %r: %s", item, e)
    return trades


def clear_trades(store: KeyValueStore) -> None:
    store.delete(TRADES_KEY)


def remove_trade(store: KeyValueStore, trade_id: str) -> bool:
    """Delete one trade from the log. Returns False when the id is unknown."""
    trades = load_trades(store)
    kept = [t for t in trades if t.id != trade_id]
    if len(kept) == len(trades):
        return False
    save_trades(store, kept)
    return True
