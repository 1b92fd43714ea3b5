"""
Material Planning - Demand Forecaster
=====================================

Historical-average demand projection from fulfilled sales order lines.

    daily_average = Σ quantity in window / window_days
    forecast      = ceil(daily_average × horizon_days)

The window is fixed (90 days by default) and counted back from now,
regardless of how much of it actually holds orders.

Confidence by number of distinct orders in the window:
    >= 20   HIGH      0.9
    >= 10   MEDIUM    0.7
    >= 5    LOW       0.6
    else    VERY_LOW  0.5
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from material_planning.catalog import OrderReader
from material_planning.config import PlanningConfig
from material_planning.errors import require_positive

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

class ConfidenceTier(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    VERY_LOW = "VERY_LOW"


# (minimum distinct orders, tier, confidence), first match wins
_CONFIDENCE_TIERS = (
    (20, ConfidenceTier.HIGH, 0.9),
    (10, ConfidenceTier.MEDIUM, 0.7),
    (5, ConfidenceTier.LOW, 0.6),
)


def classify_confidence(order_count: int) -> Tuple[ConfidenceTier, float]:
    for threshold, tier, confidence in _CONFIDENCE_TIERS:
        if order_count >= threshold:
            return tier, confidence
    return ConfidenceTier.VERY_LOW, 0.5


@dataclass(frozen=True)
class DemandForecast:
    """Projected demand of an item over a horizon."""
    item_id: str
    horizon_days: int
    forecast_quantity: int
    confidence: float
    confidence_tier: ConfidenceTier
    order_count: int
    daily_average: float
    window_days: int

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "horizon_days": self.horizon_days,
            "forecast_quantity": self.forecast_quantity,
            "confidence": self.confidence,
            "confidence_tier": self.confidence_tier.value,
            "order_count": self.order_count,
            "daily_average": float(self.daily_average),
            "window_days": self.window_days,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# FORECASTER
# ═══════════════════════════════════════════════════════════════════════════════

class DemandForecaster:
    """
    Usage:
        forecaster = DemandForecaster(order_book, config)
        forecaster.forecast("FG-001", 30).forecast_quantity
    """

    def __init__(
        self,
        orders: OrderReader,
        config: Optional[PlanningConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.orders = orders
        self.config = config or PlanningConfig()
        self._clock = clock or datetime.now

    def history(self, item_id: str) -> pd.DataFrame:
        """Fulfilled lines of ``item_id`` inside the window (order_id, order_date, quantity)."""
        now = self._clock()
        window_start = now - timedelta(days=self.config.forecast_window_days)

        rows = [
            {"order_id": line.order_id, "order_date": line.order_date, "quantity": line.quantity}
            for line in self.orders.order_lines(self.config.fulfilled_order_statuses)
            if line.item_id == item_id
        ]
        df = pd.DataFrame(rows, columns=["order_id", "order_date", "quantity"])
        if df.empty:
            return df

        df["order_date"] = pd.to_datetime(df["order_date"])
        mask = (df["order_date"] >= pd.Timestamp(window_start)) & (df["order_date"] <= pd.Timestamp(now))
        return df.loc[mask].reset_index(drop=True)

    def daily_demand(self, item_id: str) -> pd.Series:
        """Quantity per calendar day inside the window, zero-filled."""
        now = self._clock()
        index = pd.date_range(
            end=pd.Timestamp(now).normalize(),
            periods=self.config.forecast_window_days,
            freq="D",
        )
        df = self.history(item_id)
        if df.empty:
            return pd.Series(0.0, index=index)
        daily = df.groupby(df["order_date"].dt.normalize())["quantity"].sum()
        return daily.reindex(index, fill_value=0.0).astype(float)

    def forecast(self, item_id: str, horizon_days: int = 30) -> DemandForecast:
        """
        Project demand of ``item_id`` over ``horizon_days``.

        Raises:
            InvalidInputError: horizon is not positive
        """
        require_positive(horizon_days, "horizon_days")

        window_days = self.config.forecast_window_days
        df = self.history(item_id)

        total = float(df["quantity"].sum()) if not df.empty else 0.0
        order_count = int(df["order_id"].nunique()) if not df.empty else 0
        daily_average = total / window_days

        # round away float noise before ceil so 3.0000000001 stays 3
        quantity = int(np.ceil(round(daily_average * horizon_days, 9)))
        tier, confidence = classify_confidence(order_count)

        logger.debug(f"Forecast {item_id} over {horizon_days}d: {quantity} "
                     f"({order_count} orders, tier {tier.value})")

        return DemandForecast(
            item_id=item_id,
            horizon_days=horizon_days,
            forecast_quantity=quantity,
            confidence=confidence,
            confidence_tier=tier,
            order_count=order_count,
            daily_average=daily_average,
            window_days=window_days,
        )
