"""Import pasted trade text into the persisted trade log."""

import logging
from typing import List, Tuple

from spreadbook.db.store import KeyValueStore, load_trades, save_trades
from spreadbook.io.text_parser import TradeBatchParser

logger = logging.getLogger(__name__)


class TradeImporter:
    """Appends parsed trades to the stored trade log."""

    @staticmethod
    def import_text(store: KeyValueStore, text: str) -> Tuple[int, int, List[str]]:
        """
        Parse text and append the trades to the log.

        Rules:
        - Lines that fail to parse become warnings; the rest are still imported.
        - Trades whose id is already in the log are skipped.
        - Appended trades keep the parser's timestamp order after the existing log.

        Returns:
            (parsed_count, appended_count, warnings)
        """
        result = TradeBatchParser.parse(text)
        warnings = [f"Line {e.line}: {e.reason}: {e.content}" for e in result.errors]

        existing = load_trades(store)
        existing_ids = {t.id for t in existing}

        appended = []
        for trade in result.trades:
            if trade.id in existing_ids:
                warnings.append(f"Skipped duplicate trade id: {trade.id}")
                continue
            existing_ids.add(trade.id)
            appended.append(trade)

        if appended:
            save_trades(store, existing + appended)

        logger.info("Imported %d of %d parsed trades", len(appended), len(result.trades))
        return len(result.trades), len(appended), warnings
