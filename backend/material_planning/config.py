"""
Material Planning - Configuration
=================================

Explicit configuration for the planning engines.

Every engine receives a ``PlanningConfig`` at construction time, so nothing
depends on process-wide state. ``PlanningConfig.from_env()`` builds one from
``MRP_*`` environment variables for deployments that configure that way.

Environment variables:
    MRP_DEFAULT_HOURLY_RATE=25
    MRP_DEFAULT_LEAD_TIME_DAYS=7
    MRP_SETUP_COST_BASIS=per_run
    MRP_OVERHEAD_ALLOCATION=percent_of_labor
    MRP_OVERHEAD_PERCENT=12.5
    MRP_INCLUDE_LOW_PRIORITY=false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# POLICY ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class SetupCostBasis(str, Enum):
    """
    How setup time enters labor cost.

    PER_RUN: setup is paid once per calculation run
    PER_UNIT: setup is charged on every unit (legacy behaviour)
    """
    PER_RUN = "per_run"
    PER_UNIT = "per_unit"


class OverheadAllocation(str, Enum):
    """Overhead allocation strategy applied on top of the rolled-up cost."""
    NONE = "none"
    PERCENT_OF_LABOR = "percent_of_labor"
    PERCENT_OF_TOTAL = "percent_of_total"


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PlanningConfig:
    """Configuration for the material planning engines."""

    # Cost roll-up
    default_hourly_rate: Optional[float] = 25.0
    setup_cost_basis: SetupCostBasis = SetupCostBasis.PER_RUN
    overhead_allocation: OverheadAllocation = OverheadAllocation.NONE
    overhead_percent: float = 0.0

    # BOM traversal
    max_bom_depth: int = 50

    # Net requirements
    default_lead_time_days: int = 7
    planning_horizon_days: int = 30
    open_order_statuses: Tuple[str, ...] = ("CONFIRMED", "PROCESSING")
    reorder_fallback_min_quantity: float = 10.0

    # Purchase suggestions
    include_low_priority_in_grouping: bool = True
    purchase_tax_rate: float = 0.22

    # Forecasting
    forecast_window_days: int = 90
    fulfilled_order_statuses: Tuple[str, ...] = ("DELIVERED", "SHIPPED")

    @classmethod
    def from_env(cls, prefix: str = "MRP_") -> PlanningConfig:
        """Build a config from environment variables, keeping defaults on bad values."""
        config = cls()

        float_mapping = {
            "DEFAULT_HOURLY_RATE": "default_hourly_rate",
            "OVERHEAD_PERCENT": "overhead_percent",
            "PURCHASE_TAX_RATE": "purchase_tax_rate",
            "REORDER_FALLBACK_MIN_QUANTITY": "reorder_fallback_min_quantity",
        }
        int_mapping = {
            "DEFAULT_LEAD_TIME_DAYS": "default_lead_time_days",
            "PLANNING_HORIZON_DAYS": "planning_horizon_days",
            "FORECAST_WINDOW_DAYS": "forecast_window_days",
            "MAX_BOM_DEPTH": "max_bom_depth",
        }
        enum_mapping = {
            "SETUP_COST_BASIS": ("setup_cost_basis", SetupCostBasis),
            "OVERHEAD_ALLOCATION": ("overhead_allocation", OverheadAllocation),
        }
        bool_mapping = {
            "INCLUDE_LOW_PRIORITY": "include_low_priority_in_grouping",
        }

        for suffix, attr_name in float_mapping.items():
            value = os.environ.get(prefix + suffix)
            if value:
                try:
                    setattr(config, attr_name, float(value))
                except ValueError:
                    logger.warning(f"Invalid value for {prefix + suffix}: {value}")

        for suffix, attr_name in int_mapping.items():
            value = os.environ.get(prefix + suffix)
            if value:
                try:
                    setattr(config, attr_name, int(value))
                except ValueError:
                    logger.warning(f"Invalid value for {prefix + suffix}: {value}")

        for suffix, (attr_name, enum_class) in enum_mapping.items():
            value = os.environ.get(prefix + suffix)
            if value:
                try:
                    setattr(config, attr_name, enum_class(value.lower()))
                    logger.info(f"Planning config {attr_name} = {value}")
                except ValueError:
                    logger.warning(f"Invalid value for {prefix + suffix}: {value}")

        for suffix, attr_name in bool_mapping.items():
            value = os.environ.get(prefix + suffix)
            if value:
                setattr(config, attr_name, value.lower() in ("true", "1", "yes"))

        # An explicit empty string disables the default rate
        if os.environ.get(prefix + "DEFAULT_HOURLY_RATE") == "":
            config.default_hourly_rate = None

        return config

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        return result
