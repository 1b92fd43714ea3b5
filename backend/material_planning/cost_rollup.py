"""
Material Planning - Cost Roll-Up Engine
=======================================

Rolls up the production cost of an item from its process pipeline and its
BOM, recursing into manufactured sub-assemblies.

Cost model (per calculation of ``quantity`` units):
    material  = Σ_step Σ_material  unit_cost × qty × quantity × (1 + scrap%/100)
              + Σ_purchased BOM edge  unit_cost × qty_per_unit × quantity × (1 + scrap%/100)
    external  = Σ_external step  external_unit_cost × quantity
    labor     = Σ_internal step  rate × minutes / 60
                minutes = standard × quantity + setup        (setup per run)
                minutes = (standard + setup) × quantity      (setup per unit)
    sub-asm   = Σ_manufactured BOM edge  total cost of the component roll-up
    total     = material + labor + external + sub-asm + overhead

Hourly rate of an internal step: average rate of the operators qualified for
the step's operation type, else the configured default rate (with a
warning), else 0 (with a warning). A missing rate never aborts the roll-up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from material_planning.catalog import CatalogReader, OperatorRateReader
from material_planning.config import OverheadAllocation, PlanningConfig, SetupCostBasis
from material_planning.errors import DataQualityWarning, WarningKind, require_positive
from material_planning.models import Item, ProcessStep

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

class RateSource(str, Enum):
    """Where the hourly rate of an internal step came from."""
    OPERATORS = "operators"
    DEFAULT = "default"
    NONE = "none"


@dataclass(frozen=True)
class ExplodedMaterial:
    """A material consumed somewhere in the tree, with its origin."""
    material_id: str
    material_name: str
    material_sku: str
    quantity: float
    unit: str
    unit_cost: float
    total_cost: float
    origin_item_id: str
    origin_item_name: str
    step_id: Optional[str] = None  # None: consumed through a BOM edge
    step_name: Optional[str] = None
    origin_path: Tuple[str, ...] = ()

    @property
    def origin(self) -> str:
        return " <- ".join(reversed(self.origin_path)) if self.origin_path else self.origin_item_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "material_id": self.material_id,
            "material_name": self.material_name,
            "material_sku": self.material_sku,
            "quantity": float(self.quantity),
            "unit": self.unit,
            "unit_cost": float(self.unit_cost),
            "total_cost": float(self.total_cost),
            "origin": self.origin,
            "origin_item_id": self.origin_item_id,
            "origin_item_name": self.origin_item_name,
            "step_id": self.step_id,
            "step_name": self.step_name,
        }


@dataclass
class StepCost:
    """Cost breakdown of one process step."""
    step_id: str
    step_name: str
    sequence: int
    operation_type: Optional[str]
    time_minutes: float
    hourly_rate: float
    rate_source: RateSource
    operator_count: int = 0
    material_cost: float = 0.0
    labor_cost: float = 0.0
    external_cost: float = 0.0
    materials: List[ExplodedMaterial] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return self.material_cost + self.labor_cost + self.external_cost

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_name": self.step_name,
            "sequence": self.sequence,
            "operation_type": self.operation_type,
            "time_minutes": float(self.time_minutes),
            "hourly_rate": float(self.hourly_rate),
            "rate_source": self.rate_source.value,
            "operator_count": self.operator_count,
            "material_cost": float(self.material_cost),
            "labor_cost": float(self.labor_cost),
            "external_cost": float(self.external_cost),
            "total_cost": float(self.total_cost),
            "materials": [m.to_dict() for m in self.materials],
        }


@dataclass
class CostBreakdown:
    """Rolled-up cost of ``quantity`` units of an item."""
    item_id: str
    item_name: str
    quantity: float
    material_cost: float = 0.0
    labor_cost: float = 0.0
    external_cost: float = 0.0
    sub_assembly_cost: float = 0.0
    overhead_cost: float = 0.0
    rolled_up_labor_cost: float = 0.0  # own labor + labor inside sub-assemblies
    steps: List[StepCost] = field(default_factory=list)
    exploded_materials: List[ExplodedMaterial] = field(default_factory=list)
    sub_assemblies: List[CostBreakdown] = field(default_factory=list)
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return (self.material_cost + self.labor_cost + self.external_cost
                + self.sub_assembly_cost + self.overhead_cost)

    @property
    def unit_cost(self) -> float:
        return self.total_cost / self.quantity if self.quantity else 0.0

    def material_totals(self) -> Dict[str, float]:
        """Total quantity per material across the whole tree."""
        totals: Dict[str, float] = {}
        for m in self.exploded_materials:
            totals[m.material_id] = totals.get(m.material_id, 0.0) + m.quantity
        return totals

    def summary(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": float(self.quantity),
            "material_cost": float(self.material_cost),
            "labor_cost": float(self.labor_cost),
            "external_cost": float(self.external_cost),
            "sub_assembly_cost": float(self.sub_assembly_cost),
            "overhead_cost": float(self.overhead_cost),
            "total_cost": float(self.total_cost),
            "unit_cost": float(self.unit_cost),
            "steps_count": len(self.steps),
            "materials_count": len(self.exploded_materials),
            "sub_assemblies_count": len(self.sub_assemblies),
            "warnings": [w.message for w in self.warnings],
        }

    def to_dict(self) -> Dict[str, Any]:
        result = self.summary()
        result.update({
            "steps": [s.to_dict() for s in self.steps],
            "exploded_materials": [m.to_dict() for m in self.exploded_materials],
            "sub_assemblies": [s.to_dict() for s in self.sub_assemblies],
            "warnings": [w.to_dict() for w in self.warnings],
        })
        return result


# ═══════════════════════════════════════════════════════════════════════════════
# COST ROLL-UP ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class CostRollupEngine:
    """
    Cost roll-up over a catalog snapshot.

    Usage:
        engine = CostRollupEngine(snapshot, rates, PlanningConfig(default_hourly_rate=30))
        breakdown = engine.calculate_cost("FG-001", 10)
        breakdown.total_cost, breakdown.warnings
    """

    def __init__(
        self,
        catalog: CatalogReader,
        rates: OperatorRateReader,
        config: Optional[PlanningConfig] = None,
    ):
        self.catalog = catalog
        self.rates = rates
        self.config = config or PlanningConfig()

    def calculate_cost(self, item_id: str, quantity: float = 1.0) -> CostBreakdown:
        """
        Roll up the cost of ``quantity`` units of ``item_id``.

        Raises:
            InvalidInputError: quantity is not positive
            ItemNotFoundError: item is unknown
        """
        require_positive(quantity, "quantity")
        item = self.catalog.require_item(item_id)

        breakdown = self._rollup(item, quantity, (item_id,))
        breakdown.overhead_cost = self._overhead(breakdown)

        logger.debug(f"Calculated cost for {item_id} x{quantity}: {breakdown.total_cost:.4f} "
                     f"(material: {breakdown.material_cost:.4f}, labor: {breakdown.labor_cost:.4f}, "
                     f"external: {breakdown.external_cost:.4f}, sub-assemblies: {breakdown.sub_assembly_cost:.4f})")
        return breakdown

    def _rollup(self, item: Item, quantity: float, path: Tuple[str, ...]) -> CostBreakdown:
        breakdown = CostBreakdown(item_id=item.item_id, item_name=item.name, quantity=quantity)

        for step in self.catalog.get_process_steps(item.item_id):
            step_cost = self._step_cost(item, step, quantity, path, breakdown.warnings)
            breakdown.material_cost += step_cost.material_cost
            breakdown.labor_cost += step_cost.labor_cost
            breakdown.external_cost += step_cost.external_cost
            breakdown.steps.append(step_cost)
            breakdown.exploded_materials.extend(step_cost.materials)

        breakdown.rolled_up_labor_cost = breakdown.labor_cost

        edges = self.catalog.get_bom_edges(item.item_id)
        if edges and len(path) - 1 >= self.config.max_bom_depth:
            logger.warning(f"Max BOM depth ({self.config.max_bom_depth}) reached in cost roll-up at {item.item_id}")
            breakdown.warnings.append(DataQualityWarning(
                kind=WarningKind.MAX_DEPTH_EXCEEDED,
                message=f"BOM depth limit {self.config.max_bom_depth} reached at {item.item_id}, components not costed",
                item_id=item.item_id,
                path=path,
            ))
            edges = []

        for edge in edges:
            component_qty = edge.quantity_per_unit * quantity * edge.scrap_factor
            component_id = edge.component_id

            if component_id in path:
                logger.warning(f"Cycle detected in cost roll-up: {' -> '.join(path)} -> {component_id}")
                breakdown.warnings.append(DataQualityWarning(
                    kind=WarningKind.CYCLIC_BOM,
                    message=f"Cycle detected in BOM: {' -> '.join(path + (component_id,))}",
                    item_id=component_id,
                    path=path + (component_id,),
                ))
                continue

            component = self.catalog.get_item(component_id)

            if component is not None and self.catalog.is_manufactured(component_id):
                sub = self._rollup(component, component_qty, path + (component_id,))
                breakdown.sub_assembly_cost += sub.total_cost
                breakdown.rolled_up_labor_cost += sub.rolled_up_labor_cost
                breakdown.sub_assemblies.append(sub)
                breakdown.warnings.extend(sub.warnings)
                breakdown.exploded_materials.extend(sub.exploded_materials)
                continue

            if component is None:
                breakdown.warnings.append(DataQualityWarning(
                    kind=WarningKind.UNKNOWN_COMPONENT,
                    message=f"Component {component_id} of {item.item_id} not found, costed at 0",
                    item_id=component_id,
                    path=path,
                ))
            material = self._material(item, component_id, component, component_qty, edge.unit, None, path)
            breakdown.material_cost += material.total_cost
            breakdown.exploded_materials.append(material)

        # Direct materials of this item, from its own steps or purchased BOM edges
        direct_material_ids: Set[str] = {
            m.material_id for m in breakdown.exploded_materials if m.origin_item_id == item.item_id
        }
        reported: Set[Tuple[str, str]] = set()
        for sub in breakdown.sub_assemblies:
            for m in sub.exploded_materials:
                key = (m.material_id, sub.item_id)
                if m.material_id in direct_material_ids and key not in reported:
                    reported.add(key)
                    breakdown.warnings.append(DataQualityWarning(
                        kind=WarningKind.DUPLICATE_MATERIAL,
                        message=(f"Material \"{m.material_name}\" is consumed both by {item.name or item.item_id} "
                                 f"and by sub-assembly {sub.item_name or sub.item_id}; check for double counting"),
                        item_id=m.material_id,
                        path=path + (sub.item_id,),
                    ))

        return breakdown

    def _step_cost(
        self,
        item: Item,
        step: ProcessStep,
        quantity: float,
        path: Tuple[str, ...],
        warnings: List[DataQualityWarning],
    ) -> StepCost:
        if self.config.setup_cost_basis == SetupCostBasis.PER_UNIT:
            minutes = (step.standard_time + step.setup_time) * quantity
        else:
            minutes = step.standard_time * quantity + step.setup_time

        step_cost = StepCost(
            step_id=step.step_id,
            step_name=step.name,
            sequence=step.sequence,
            operation_type=step.operation_type,
            time_minutes=minutes,
            hourly_rate=0.0,
            rate_source=RateSource.NONE,
        )

        for sm in step.materials:
            component = self.catalog.get_item(sm.component_id)
            if component is None:
                warnings.append(DataQualityWarning(
                    kind=WarningKind.UNKNOWN_COMPONENT,
                    message=f"Material {sm.component_id} of step \"{step.name}\" not found, costed at 0",
                    item_id=sm.component_id,
                    path=path,
                ))
            adjusted_qty = sm.quantity * quantity * (1 + sm.scrap_percentage / 100)
            material = self._material(item, sm.component_id, component, adjusted_qty, sm.unit, step, path)
            step_cost.material_cost += material.total_cost
            step_cost.materials.append(material)

        if step.is_external:
            step_cost.external_cost = step.external_unit_cost * quantity
            return step_cost

        rate, source, count = self._resolve_rate(step, warnings)
        step_cost.hourly_rate = rate
        step_cost.rate_source = source
        step_cost.operator_count = count
        step_cost.labor_cost = rate * minutes / 60
        return step_cost

    def _resolve_rate(
        self,
        step: ProcessStep,
        warnings: List[DataQualityWarning],
    ) -> Tuple[float, RateSource, int]:
        if step.operation_type:
            avg_rate = self.rates.average_hourly_rate(step.operation_type)
            if avg_rate is not None:
                return avg_rate, RateSource.OPERATORS, self.rates.qualified_operator_count(step.operation_type)

        if self.config.default_hourly_rate is not None:
            warnings.append(DataQualityWarning(
                kind=WarningKind.DEFAULT_RATE_USED,
                message=f"Step \"{step.name}\": no qualified operator, default rate used",
                item_id=step.item_id,
            ))
            return self.config.default_hourly_rate, RateSource.DEFAULT, 0

        logger.warning(f"No hourly rate for step {step.step_id} ({step.operation_type}), using 0")
        warnings.append(DataQualityWarning(
            kind=WarningKind.MISSING_RATE,
            message=f"Step \"{step.name}\": no qualified operator and no default rate, labor costed at 0",
            item_id=step.item_id,
        ))
        return 0.0, RateSource.NONE, 0

    @staticmethod
    def _material(
        origin: Item,
        material_id: str,
        material: Optional[Item],
        quantity: float,
        unit: str,
        step: Optional[ProcessStep],
        path: Tuple[str, ...],
    ) -> ExplodedMaterial:
        unit_cost = material.cost if material else 0.0
        return ExplodedMaterial(
            material_id=material_id,
            material_name=material.name if material else material_id,
            material_sku=material.sku if material else "",
            quantity=quantity,
            unit=unit,
            unit_cost=unit_cost,
            total_cost=unit_cost * quantity,
            origin_item_id=origin.item_id,
            origin_item_name=origin.name,
            step_id=step.step_id if step else None,
            step_name=step.name if step else None,
            origin_path=path,
        )

    def _overhead(self, breakdown: CostBreakdown) -> float:
        pct = self.config.overhead_percent / 100
        if self.config.overhead_allocation == OverheadAllocation.PERCENT_OF_LABOR:
            return breakdown.rolled_up_labor_cost * pct
        if self.config.overhead_allocation == OverheadAllocation.PERCENT_OF_TOTAL:
            return (breakdown.material_cost + breakdown.labor_cost + breakdown.external_cost
                    + breakdown.sub_assembly_cost) * pct
        return 0.0
