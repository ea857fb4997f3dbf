"""
Configuration for the spread trade log.
Trading constants, environment settings and logging setup.
"""

import os
import logging
from dataclasses import dataclass, asdict, replace
from typing import Dict, Optional

logger = logging.getLogger(__name__)

# Get database URL from environment, default to local SQLite
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./spreadbook.db")
LOG_LEVEL = os.getenv("SPREADBOOK_LOG_LEVEL", "INFO")

TRADING_CONSTANTS_KEY = "trading_constants"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for scripts and notebooks."""
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


@dataclass(frozen=True)
class TradingConstants:
    """
    Tick economics and per-leg transaction cost.

    RT cost for a closed round-trip is charged on both entry and exit:
    quantity x rt_legs x 2 x cost_per_leg.
    """
    tick_value: float = 16.5  # $ per tick per lot
    tick_size: float = 0.005  # price units per tick
    cost_per_leg: float = 1.65  # $ per leg per lot

    def __post_init__(self):
        if self.tick_size <= 0:
            raise ValueError(f"tick_size must be positive, got {self.tick_size}")
        if self.tick_value < 0 or self.cost_per_leg < 0:
            raise ValueError("tick_value and cost_per_leg must not be negative")

    def price_to_ticks(self, price_diff: float) -> float:
        return price_diff / self.tick_size

    def price_pnl_to_dollars(self, price_pnl: float) -> float:
        return self.price_to_ticks(price_pnl) * self.tick_value

    def rt_cost(self, quantity: float, rt_legs: float) -> float:
        """Cost of a closed round-trip (entry legs + exit legs)."""
        return quantity * rt_legs * 2 * self.cost_per_leg

    def updated(
        self,
        tick_value: Optional[float] = None,
        tick_size: Optional[float] = None,
        cost_per_leg: Optional[float] = None,
    ) -> "TradingConstants":
        changes = {}
        if tick_value is not None:
            changes["tick_value"] = float(tick_value)
        if tick_size is not None:
            changes["tick_size"] = float(tick_size)
        if cost_per_leg is not None:
            changes["cost_per_leg"] = float(cost_per_leg)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "TradingConstants":
        defaults = cls()
        return defaults.updated(
            tick_value=data.get("tick_value"),
            tick_size=data.get("tick_size"),
            cost_per_leg=data.get("cost_per_leg"),
        )


def load_trading_constants(store) -> TradingConstants:
    """Load constants from the key-value store, falling back to defaults."""
    data = store.get(TRADING_CONSTANTS_KEY)
    if not data:
        return TradingConstants()
    try:
        return TradingConstants.from_dict(data)
    except (TypeError, ValueError, AttributeError) as e:
        logger.error("Failed to load trading constants: %s", e)
        return TradingConstants()


def save_trading_constants(store, constants: TradingConstants) -> None:
    store.set(TRADING_CONSTANTS_KEY, constants.to_dict())
