"""
Material Planning - BOM Explosion Engine
========================================

Bill of Materials (BOM) explosion over a catalog snapshot.

Features:
- Multi-level depth-first explosion with scrap uplift per edge
- One line per edge traversal (callers aggregate by component id)
- Per-path cycle guard: cyclic segments are cut and reported, never fatal
- Leaf view, BOM depth and prospective-edge cycle validation

Quantity model:
    required(component) = quantity_per_unit × incoming × (1 + scrap% / 100)

Every quantity leaving this module already carries scrap uplift.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

import pandas as pd

from material_planning.catalog import CatalogReader
from material_planning.config import PlanningConfig
from material_planning.errors import DataQualityWarning, WarningKind, require_positive

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExplodedLine:
    """One edge traversal in a BOM explosion."""
    component_id: str
    parent_id: str
    total_quantity: float
    depth: int  # 1 = direct component of the root
    is_leaf: bool = True
    path: Tuple[str, ...] = ()  # root .. parent

    def to_dict(self) -> Dict:
        return {
            "component_id": self.component_id,
            "parent_id": self.parent_id,
            "total_quantity": float(self.total_quantity),
            "depth": self.depth,
            "is_leaf": self.is_leaf,
            "path": list(self.path),
        }


@dataclass
class ExplosionResult:
    """Flattened BOM explosion of a root item."""
    root_id: str
    quantity: float
    lines: List[ExplodedLine] = field(default_factory=list)
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def has_cycles(self) -> bool:
        return any(w.kind == WarningKind.CYCLIC_BOM for w in self.warnings)

    @property
    def depth(self) -> int:
        return max((line.depth for line in self.lines), default=0)

    def aggregate(self, leaves_only: bool = False) -> Dict[str, float]:
        """Total quantity per component id."""
        totals: Dict[str, float] = defaultdict(float)
        for line in self.lines:
            if leaves_only and not line.is_leaf:
                continue
            totals[line.component_id] += line.total_quantity
        return dict(totals)

    def to_dict(self) -> Dict:
        return {
            "root_id": self.root_id,
            "quantity": float(self.quantity),
            "lines": [line.to_dict() for line in self.lines],
            "warnings": [w.to_dict() for w in self.warnings],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# BOM EXPLOSION ENGINE
# ═══════════════════════════════════════════════════════════════════════════════

class BOMExplosionEngine:
    """
    Bill of Materials explosion engine.

    Usage:
        engine = BOMExplosionEngine(snapshot)
        result = engine.explode("FG-001", 10)
        totals = result.aggregate()
    """

    def __init__(self, catalog: CatalogReader, config: Optional[PlanningConfig] = None):
        self.catalog = catalog
        self.config = config or PlanningConfig()

    def explode(self, root_item_id: str, quantity: float) -> ExplosionResult:
        """
        Explode the BOM of ``root_item_id`` for ``quantity`` units.

        Raises:
            InvalidInputError: quantity is not positive
            ItemNotFoundError: root item is unknown
        """
        require_positive(quantity, "quantity")
        self.catalog.require_item(root_item_id)

        result = ExplosionResult(root_id=root_item_id, quantity=quantity)
        self._explode_recursive(root_item_id, quantity, 0, (root_item_id,), frozenset([root_item_id]), result)

        if result.warnings:
            logger.warning(f"BOM explosion of {root_item_id} produced {len(result.warnings)} warnings")
        return result

    def _explode_recursive(
        self,
        item_id: str,
        incoming_qty: float,
        depth: int,
        path: Tuple[str, ...],
        visited: FrozenSet[str],
        result: ExplosionResult,
    ) -> None:
        if depth >= self.config.max_bom_depth:
            logger.warning(f"Max BOM depth ({self.config.max_bom_depth}) reached at {item_id}")
            result.warnings.append(DataQualityWarning(
                kind=WarningKind.MAX_DEPTH_EXCEEDED,
                message=f"BOM depth limit {self.config.max_bom_depth} reached at {item_id}",
                item_id=item_id,
                path=path,
            ))
            return

        for edge in self.catalog.get_bom_edges(item_id):
            required_qty = edge.quantity_per_unit * incoming_qty * edge.scrap_factor
            component_id = edge.component_id
            children = self.catalog.get_bom_edges(component_id)

            result.lines.append(ExplodedLine(
                component_id=component_id,
                parent_id=item_id,
                total_quantity=required_qty,
                depth=depth + 1,
                is_leaf=not children,
                path=path,
            ))

            if not children:
                continue

            if component_id in visited:
                logger.warning(f"Cycle detected in BOM: {' -> '.join(path)} -> {component_id}")
                result.warnings.append(DataQualityWarning(
                    kind=WarningKind.CYCLIC_BOM,
                    message=f"Cycle detected in BOM: {' -> '.join(path + (component_id,))}",
                    item_id=component_id,
                    path=path + (component_id,),
                ))
                continue

            self._explode_recursive(
                component_id,
                required_qty,
                depth + 1,
                path + (component_id,),
                visited | {component_id},
                result,
            )

    # ═══════════════════════════════════════════════════════════════════════════
    # DERIVED VIEWS
    # ═══════════════════════════════════════════════════════════════════════════

    def leaf_requirements(self, item_id: str, quantity: float) -> Dict[str, float]:
        """Aggregated quantities of leaf components (raw materials)."""
        return self.explode(item_id, quantity).aggregate(leaves_only=True)

    def material_cost(self, item_id: str, quantity: float = 1.0) -> float:
        """
        Standing cost of the leaf components only.

        Intermediate assemblies are skipped so that nothing is counted twice.
        """
        total = 0.0
        for comp_id, qty in self.leaf_requirements(item_id, quantity).items():
            item = self.catalog.get_item(comp_id)
            if item:
                total += qty * item.cost
        return total

    def bom_depth(self, item_id: str) -> int:
        """Number of levels below ``item_id`` (0 for a base component)."""
        return self.explode(item_id, 1.0).depth

    def would_create_cycle(self, parent_id: str, component_id: str) -> bool:
        """Check whether adding ``parent_id -> component_id`` closes a cycle."""
        if parent_id == component_id:
            return True

        stack = [component_id]
        seen = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            for edge in self.catalog.get_bom_edges(current):
                if edge.component_id == parent_id:
                    return True
                stack.append(edge.component_id)
        return False

    def to_dataframe(self, item_id: str, quantity: float = 1.0) -> pd.DataFrame:
        """Export the exploded BOM to a DataFrame."""
        result = self.explode(item_id, quantity)

        rows = []
        for line in result.lines:
            item = self.catalog.get_item(line.component_id)
            rows.append({
                "depth": line.depth,
                "component_id": line.component_id,
                "component_name": item.name if item else line.component_id,
                "parent_id": line.parent_id,
                "total_quantity": line.total_quantity,
                "unit": item.unit if item else None,
                "is_leaf": line.is_leaf,
                "unit_cost": item.cost if item else 0.0,
            })

        columns = ["depth", "component_id", "component_name", "parent_id",
                   "total_quantity", "unit", "is_leaf", "unit_cost"]
        return pd.DataFrame(rows, columns=columns)
