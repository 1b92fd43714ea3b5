"""
Material Planning - Net Requirements Calculator
===============================================

Nets gross material requirements against available stock.

Entry modes:
- Order-driven: explode every open sales order line, accumulate gross
  requirement per component with the earliest needed-by date
- Direct production request: explode one (item, quantity, required date)
- Reorder-point scan: items at or below their reorder point, regardless of demand

Netting:
    shortage  = max(0, gross - available)
    included  = shortage > 0 or available <= reorder_point
    quantity  = max(ceil(shortage), reorder_quantity)
    order on  = max(needed_by - lead_time, now)
    cost      = quantity × standing cost

Priority (first match wins):
    available <= 0              CRITICAL
    available <= min_stock      HIGH
    available <= reorder_point  MEDIUM
    otherwise                   LOW
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from material_planning.bom_explosion import BOMExplosionEngine
from material_planning.catalog import CatalogReader
from material_planning.config import PlanningConfig
from material_planning.errors import (
    CalculationFailure,
    DataQualityWarning,
    ItemNotFoundError,
    MaterialPlanningError,
    require_positive,
)
from material_planning.models import Item, OrderLine
from material_planning.stock import StockAvailability, StockPositionResolver

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

class Priority(str, Enum):
    """Urgency of a requirement."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


def classify_priority(available: float, min_stock: float, reorder_point: float) -> Priority:
    if available <= 0:
        return Priority.CRITICAL
    if available <= min_stock:
        return Priority.HIGH
    if available <= reorder_point:
        return Priority.MEDIUM
    return Priority.LOW


def sort_by_priority(requirements: Iterable[Requirement]) -> List[Requirement]:
    """CRITICAL first; insertion order kept within a tier."""
    return sorted(requirements, key=lambda r: r.priority.rank)


@dataclass(frozen=True)
class Requirement:
    """Net material requirement for one item. Never mutated once returned."""
    item_id: str
    sku: str
    name: str
    unit: str
    required_quantity: float
    available_quantity: float
    reserved_quantity: float
    shortage_quantity: float
    reorder_point: float
    suggested_quantity: float
    lead_time_days: int
    suggested_order_date: datetime
    priority: Priority
    estimated_cost: float
    unit_cost: float
    needed_by: Optional[datetime] = None
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None

    @property
    def is_sourced(self) -> bool:
        return bool(self.supplier_id)

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "required_quantity": float(self.required_quantity),
            "available_quantity": float(self.available_quantity),
            "reserved_quantity": float(self.reserved_quantity),
            "shortage_quantity": float(self.shortage_quantity),
            "reorder_point": float(self.reorder_point),
            "suggested_quantity": float(self.suggested_quantity),
            "lead_time_days": self.lead_time_days,
            "suggested_order_date": self.suggested_order_date.isoformat(),
            "needed_by": self.needed_by.isoformat() if self.needed_by else None,
            "priority": self.priority.value,
            "estimated_cost": float(self.estimated_cost),
            "unit_cost": float(self.unit_cost),
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
        }


@dataclass
class NettingResult:
    """Requirements of one calculation, with the failures and warnings it collected."""
    requirements: List[Requirement] = field(default_factory=list)
    failures: List[CalculationFailure] = field(default_factory=list)
    warnings: List[DataQualityWarning] = field(default_factory=list)
    calculated_at: Optional[datetime] = None

    def by_priority(self, priority: Priority) -> List[Requirement]:
        return [r for r in self.requirements if r.priority == priority]


@dataclass
class _GrossRequirement:
    quantity: float
    needed_by: datetime


# ═══════════════════════════════════════════════════════════════════════════════
# CALCULATOR
# ═══════════════════════════════════════════════════════════════════════════════

class NetRequirementsCalculator:
    """
    Net requirements over one catalog snapshot and one stock snapshot.

    Usage:
        calc = NetRequirementsCalculator(snapshot, resolver, config)
        result = calc.calculate_for_orders(open_lines)
    """

    def __init__(
        self,
        catalog: CatalogReader,
        resolver: StockPositionResolver,
        config: Optional[PlanningConfig] = None,
        explosion: Optional[BOMExplosionEngine] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.config = config or PlanningConfig()
        self.explosion = explosion or BOMExplosionEngine(catalog, self.config)
        self._clock = clock or datetime.now

    # ═══════════════════════════════════════════════════════════════════════════
    # ENTRY MODES
    # ═══════════════════════════════════════════════════════════════════════════

    def calculate_for_orders(self, order_lines: Iterable[OrderLine]) -> NettingResult:
        """
        Order-driven netting.

        Lines whose status is not an open status are ignored. A line whose
        item is unknown is reported as a failure; the rest of the batch runs.
        """
        now = self._clock()
        result = NettingResult(calculated_at=now)
        open_statuses = {s.upper() for s in self.config.open_order_statuses}
        gross: Dict[str, _GrossRequirement] = {}

        lines_processed = 0
        for line in order_lines:
            if line.status.upper() not in open_statuses:
                continue
            try:
                explosion = self.explosion.explode(line.item_id, line.quantity)
            except MaterialPlanningError as e:
                logger.warning(f"Skipping order {line.order_id} line {line.item_id}: {e.message}")
                result.failures.append(CalculationFailure.from_error(line.item_id, e, line.order_id))
                continue

            lines_processed += 1
            result.warnings.extend(explosion.warnings)
            for exploded in explosion.lines:
                self._accumulate(gross, exploded.component_id, exploded.total_quantity, line.due_date)

        result.requirements = self._net_all(gross, now, result)
        logger.info(f"Order-driven netting: {lines_processed} lines, {len(gross)} components, "
                    f"{len(result.requirements)} requirements, {len(result.failures)} failures")
        return result

    def calculate_for_production(
        self,
        item_id: str,
        quantity: float,
        required_date: datetime,
    ) -> NettingResult:
        """
        Netting for a single production request.

        Raises:
            InvalidInputError: quantity is not positive
            ItemNotFoundError: the item to produce is unknown
        """
        require_positive(quantity, "quantity")
        now = self._clock()
        result = NettingResult(calculated_at=now)

        explosion = self.explosion.explode(item_id, quantity)
        result.warnings.extend(explosion.warnings)

        gross: Dict[str, _GrossRequirement] = {}
        for exploded in explosion.lines:
            self._accumulate(gross, exploded.component_id, exploded.total_quantity, required_date)

        result.requirements = self._net_all(gross, now, result)
        return result

    def reorder_point_scan(self) -> NettingResult:
        """Steady-state replenishment: every active item at or below its reorder point."""
        now = self._clock()
        result = NettingResult(calculated_at=now)
        order_date = now + timedelta(days=1)

        for item in self.catalog.list_items():
            if not item.is_active or item.reorder_point <= 0:
                continue

            stock = self.resolver.availability(item.item_id)
            if stock.available > item.reorder_point:
                continue

            quantity = item.reorder_quantity or max(
                item.min_stock * 2, self.config.reorder_fallback_min_quantity
            )
            lead_time = self._lead_time(item)
            result.requirements.append(self._build(
                item=item,
                stock=stock,
                required=quantity,
                shortage=max(0.0, item.min_stock - stock.available),
                suggested_quantity=quantity,
                order_date=order_date,
                needed_by=order_date + timedelta(days=lead_time),
                lead_time=lead_time,
            ))

        result.requirements = sort_by_priority(result.requirements)
        logger.info(f"Reorder-point scan: {len(result.requirements)} items below reorder point")
        return result

    # ═══════════════════════════════════════════════════════════════════════════
    # NETTING
    # ═══════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _accumulate(
        gross: Dict[str, _GrossRequirement],
        item_id: str,
        quantity: float,
        needed_by: datetime,
    ) -> None:
        entry = gross.get(item_id)
        if entry is None:
            gross[item_id] = _GrossRequirement(quantity, needed_by)
            return
        entry.quantity += quantity
        if needed_by < entry.needed_by:
            entry.needed_by = needed_by

    def _net_all(
        self,
        gross: Dict[str, _GrossRequirement],
        now: datetime,
        result: NettingResult,
    ) -> List[Requirement]:
        requirements: List[Requirement] = []
        for item_id, entry in gross.items():
            item = self.catalog.get_item(item_id)
            if item is None:
                result.failures.append(CalculationFailure.from_error(item_id, ItemNotFoundError(item_id)))
                continue
            requirement = self.net(item, entry.quantity, entry.needed_by, now)
            if requirement is not None:
                requirements.append(requirement)
        return sort_by_priority(requirements)

    def net(
        self,
        item: Item,
        gross_quantity: float,
        needed_by: datetime,
        now: Optional[datetime] = None,
    ) -> Optional[Requirement]:
        """Net one gross requirement; None when the item needs nothing."""
        now = now or self._clock()
        stock = self.resolver.availability(item.item_id)
        shortage = max(0.0, gross_quantity - stock.available)

        if not (shortage > 0 or stock.available <= item.reorder_point):
            return None

        lead_time = self._lead_time(item)
        order_date = max(needed_by - timedelta(days=lead_time), now)
        suggested = max(_round_up(shortage), item.reorder_quantity)

        return self._build(
            item=item,
            stock=stock,
            required=gross_quantity,
            shortage=shortage,
            suggested_quantity=suggested,
            order_date=order_date,
            needed_by=needed_by,
            lead_time=lead_time,
        )

    def _lead_time(self, item: Item) -> int:
        if item.lead_time_days is None:
            return self.config.default_lead_time_days
        return item.lead_time_days

    @staticmethod
    def _build(
        item: Item,
        stock: StockAvailability,
        required: float,
        shortage: float,
        suggested_quantity: float,
        order_date: datetime,
        needed_by: Optional[datetime],
        lead_time: int,
    ) -> Requirement:
        return Requirement(
            item_id=item.item_id,
            sku=item.sku,
            name=item.name,
            unit=item.unit,
            required_quantity=required,
            available_quantity=stock.available,
            reserved_quantity=stock.reserved,
            shortage_quantity=shortage,
            reorder_point=item.reorder_point,
            suggested_quantity=suggested_quantity,
            lead_time_days=lead_time,
            suggested_order_date=order_date,
            needed_by=needed_by,
            priority=classify_priority(stock.available, item.min_stock, item.reorder_point),
            estimated_cost=suggested_quantity * item.cost,
            unit_cost=item.cost,
            supplier_id=item.supplier_id,
            supplier_name=item.supplier_name,
        )


def _round_up(quantity: float) -> float:
    """Round a shortage up to whole units, ignoring float noise below 1e-9."""
    if quantity <= 0:
        return 0.0
    return float(math.ceil(round(quantity, 9)))
