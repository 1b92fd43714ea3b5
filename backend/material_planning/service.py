"""
Material Planning - Service facade.

Wires the engines over one catalog snapshot and one stock snapshot per
top-level call.

Usage:
    service = MaterialPlanningService(catalog, ledger, order_book, rates, config)
    run = service.calculate_requirements_for_orders()
    run.summary["critical_shortages"], run.suggested_orders
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from material_planning.bom_explosion import BOMExplosionEngine
from material_planning.catalog import (
    CatalogReader,
    CatalogSnapshot,
    OperatorRateReader,
    OperatorRateTable,
    OrderReader,
)
from material_planning.config import PlanningConfig
from material_planning.cost_rollup import CostBreakdown, CostRollupEngine
from material_planning.errors import CalculationFailure, DataQualityWarning, MaterialPlanningError
from material_planning.forecasting import DemandForecast, DemandForecaster
from material_planning.purchasing import PurchaseSuggestionGrouper, SuggestedPurchaseOrder
from material_planning.requirements import (
    NetRequirementsCalculator,
    NettingResult,
    Priority,
    Requirement,
)
from material_planning.stock import StockPositionResolver, StockReader

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class MRPRunResult:
    """Complete result of a net-requirements run."""
    calculation_date: datetime
    planning_horizon_days: int
    requirements: List[Requirement] = field(default_factory=list)
    suggested_orders: List[SuggestedPurchaseOrder] = field(default_factory=list)
    unsourced: List[Requirement] = field(default_factory=list)
    failures: List[CalculationFailure] = field(default_factory=list)
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, Any]:
        return {
            "total_materials": len(self.requirements),
            "critical_shortages": sum(1 for r in self.requirements if r.priority == Priority.CRITICAL),
            "high_priority_items": sum(1 for r in self.requirements if r.priority == Priority.HIGH),
            "estimated_total_cost": float(sum(r.estimated_cost for r in self.requirements)),
            "suppliers_involved": len(self.suggested_orders),
            "unsourced_items": len(self.unsourced),
            "failures": len(self.failures),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "calculation_date": self.calculation_date.isoformat(),
            "planning_horizon_days": self.planning_horizon_days,
            "requirements": [r.to_dict() for r in self.requirements],
            "suggested_orders": [o.to_dict() for o in self.suggested_orders],
            "unsourced": [r.to_dict() for r in self.unsourced],
            "failures": [f.to_dict() for f in self.failures],
            "warnings": [w.to_dict() for w in self.warnings],
            "summary": self.summary,
        }


@dataclass
class BatchCostResult:
    """Cost roll-ups of several items; one failing item never stops the batch."""
    breakdowns: Dict[str, CostBreakdown] = field(default_factory=dict)
    failures: List[CalculationFailure] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": {k: v.summary() for k, v in self.breakdowns.items()},
            "failures": [f.to_dict() for f in self.failures],
            "total_processed": len(self.breakdowns) + len(self.failures),
            "successful": len(self.breakdowns),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SERVICE FACADE
# ═══════════════════════════════════════════════════════════════════════════════

class MaterialPlanningService:
    """
    Facade over explosion, cost roll-up, netting, grouping and forecasting.

    The stores are read through the abstract readers only. Each public
    operation captures its own snapshot, so two calls never share state.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        stock: StockReader,
        orders: OrderReader,
        rates: Optional[OperatorRateReader] = None,
        config: Optional[PlanningConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.stock = stock
        self.orders = orders
        self.rates = rates or OperatorRateTable()
        self.config = config or PlanningConfig()
        self._clock = clock or datetime.now
        self.grouper = PurchaseSuggestionGrouper(self.config)

    def _calculator(self, snapshot: CatalogSnapshot) -> NetRequirementsCalculator:
        resolver = StockPositionResolver.from_reader(self.stock, [i.item_id for i in snapshot.list_items()])
        return NetRequirementsCalculator(
            snapshot,
            resolver,
            self.config,
            explosion=BOMExplosionEngine(snapshot, self.config),
            clock=self._clock,
        )

    def _run_result(self, netting: NettingResult) -> MRPRunResult:
        requirements = netting.requirements
        return MRPRunResult(
            calculation_date=netting.calculated_at or self._clock(),
            planning_horizon_days=self.config.planning_horizon_days,
            requirements=requirements,
            suggested_orders=self.grouper.group(requirements),
            unsourced=self.grouper.unsourced(requirements),
            failures=netting.failures,
            warnings=netting.warnings,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # NET REQUIREMENTS
    # ═══════════════════════════════════════════════════════════════════════════

    def calculate_requirements_for_orders(self) -> MRPRunResult:
        """Net requirements of every open sales order line."""
        lines = self.orders.order_lines(self.config.open_order_statuses)
        logger.info(f"Starting order-driven MRP run over {len(lines)} open order lines")

        snapshot = CatalogSnapshot.capture(self.catalog, {line.item_id for line in lines})
        result = self._run_result(self._calculator(snapshot).calculate_for_orders(lines))

        logger.info(f"MRP run completed: {result.summary}")
        return result

    def calculate_requirements_for_production(
        self,
        item_id: str,
        quantity: float,
        required_date: datetime,
    ) -> MRPRunResult:
        """Net requirements of one production request."""
        snapshot = CatalogSnapshot.capture(self.catalog, [item_id])
        netting = self._calculator(snapshot).calculate_for_production(item_id, quantity, required_date)
        return self._run_result(netting)

    def analyze_reorder_points(self) -> MRPRunResult:
        """Items at or below their reorder point, independent of demand."""
        snapshot = CatalogSnapshot.capture_all(self.catalog)
        return self._run_result(self._calculator(snapshot).reorder_point_scan())

    def critical_shortages(self, priorities: Sequence[Priority] = (Priority.CRITICAL,)) -> List[Requirement]:
        """Order-driven requirements in the given priority tiers."""
        wanted = set(priorities)
        return [r for r in self.calculate_requirements_for_orders().requirements if r.priority in wanted]

    # ═══════════════════════════════════════════════════════════════════════════
    # COSTS
    # ═══════════════════════════════════════════════════════════════════════════

    def calculate_cost(self, item_id: str, quantity: float = 1.0) -> CostBreakdown:
        snapshot = CatalogSnapshot.capture(self.catalog, [item_id])
        return CostRollupEngine(snapshot, self.rates, self.config).calculate_cost(item_id, quantity)

    def calculate_all_costs(self, item_ids: Optional[Iterable[str]] = None) -> BatchCostResult:
        """
        Unit cost roll-up for several items.

        Args:
            item_ids: items to cost; every active manufactured item when None
        """
        if item_ids is None:
            snapshot = CatalogSnapshot.capture_all(self.catalog)
            item_ids = [
                item.item_id for item in snapshot.list_items()
                if item.is_active and snapshot.is_manufactured(item.item_id)
            ]
        else:
            item_ids = list(item_ids)
            snapshot = CatalogSnapshot.capture(self.catalog, item_ids)

        engine = CostRollupEngine(snapshot, self.rates, self.config)
        result = BatchCostResult()
        for item_id in item_ids:
            try:
                result.breakdowns[item_id] = engine.calculate_cost(item_id)
            except MaterialPlanningError as e:
                logger.warning(f"Cost roll-up failed for {item_id}: {e.message}")
                result.failures.append(CalculationFailure.from_error(item_id, e))

        logger.info(f"Batch cost roll-up: {len(result.breakdowns)} ok, {len(result.failures)} failed")
        return result

    # ═══════════════════════════════════════════════════════════════════════════
    # FORECAST
    # ═══════════════════════════════════════════════════════════════════════════

    def forecast_demand(self, item_id: str, horizon_days: int = 30) -> DemandForecast:
        return DemandForecaster(self.orders, self.config, self._clock).forecast(item_id, horizon_days)
