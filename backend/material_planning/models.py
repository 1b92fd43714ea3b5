"""
Material Planning - Master data structures.

Items, BOM edges, process steps, stock records and order lines as the
engines read them. All of these are read-only inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ItemType(str, Enum):
    """Type of catalog item."""
    FINISHED_GOOD = "finished_good"
    SEMI_FINISHED = "semi_finished"
    RAW_MATERIAL = "raw_material"
    PACKAGING = "packaging"
    CONSUMABLE = "consumable"


@dataclass
class Item:
    """Product or material, with its stock policy fields."""
    item_id: str
    sku: str
    name: str = ""
    unit: str = "pcs"
    cost: float = 0.0  # Standing unit cost
    item_type: ItemType = ItemType.RAW_MATERIAL
    min_stock: float = 0.0
    reorder_point: float = 0.0
    reorder_quantity: float = 0.0
    lead_time_days: Optional[int] = None
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    is_active: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "unit": self.unit,
            "cost": float(self.cost),
            "item_type": self.item_type.value,
            "min_stock": float(self.min_stock),
            "reorder_point": float(self.reorder_point),
            "reorder_quantity": float(self.reorder_quantity),
            "lead_time_days": self.lead_time_days,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class BomEdge:
    """Component relationship: ``quantity_per_unit`` of component per unit of parent."""
    parent_id: str
    component_id: str
    quantity_per_unit: float
    scrap_percentage: float = 0.0  # 0-100
    unit: str = "pcs"

    @property
    def scrap_factor(self) -> float:
        return 1 + self.scrap_percentage / 100


@dataclass(frozen=True)
class StepMaterial:
    """Material consumed by a process step, per unit of the produced item."""
    component_id: str
    quantity: float
    scrap_percentage: float = 0.0
    unit: str = "pcs"


@dataclass
class ProcessStep:
    """Manufacturing phase of an item."""
    step_id: str
    item_id: str
    sequence: int
    name: str = ""
    operation_type: Optional[str] = None
    standard_time: float = 0.0  # minutes per unit
    setup_time: float = 0.0  # minutes per run
    is_external: bool = False
    external_unit_cost: float = 0.0
    materials: List[StepMaterial] = field(default_factory=list)


@dataclass(frozen=True)
class StockRecord:
    """Stock of an item at one location."""
    item_id: str
    location: str = "MAIN"
    on_hand: float = 0.0
    reserved: float = 0.0


@dataclass(frozen=True)
class OrderLine:
    """Sales order line, open (demand) or fulfilled (history)."""
    order_id: str
    item_id: str
    quantity: float
    order_date: datetime
    status: str = "CONFIRMED"
    needed_by: Optional[datetime] = None

    @property
    def due_date(self) -> datetime:
        return self.needed_by or self.order_date
