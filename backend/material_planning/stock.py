"""
Material Planning - Stock Position Resolver
===========================================

Available stock per item, aggregated across locations:

    available[item] = Σ_location on_hand[item, location] - reserved[item, location]

The resolver works on records read once at construction, so one calculation
never observes stock levels changing underneath it.

Also provides BOM-level availability checks:
- check_bom_availability: leaf shortages for building a quantity
- producible_quantity: how many units the current stock can build
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import pandas as pd

from material_planning.bom_explosion import BOMExplosionEngine
from material_planning.catalog import dataframe_records
from material_planning.errors import CatalogValidationError
from material_planning.models import StockRecord
from material_planning.schemas import StockRow, validate_rows

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StockAvailability:
    """Stock position of an item."""
    item_id: str
    on_hand: float = 0.0
    reserved: float = 0.0

    @property
    def available(self) -> float:
        return self.on_hand - self.reserved

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "on_hand": float(self.on_hand),
            "reserved": float(self.reserved),
            "available": float(self.available),
        }


@dataclass(frozen=True)
class ComponentShortage:
    item_id: str
    required: float
    available: float

    @property
    def shortage(self) -> float:
        return self.required - self.available


@dataclass
class BomAvailability:
    item_id: str
    quantity: float
    shortages: List[ComponentShortage] = field(default_factory=list)

    @property
    def available(self) -> bool:
        return not self.shortages


@dataclass
class LimitingComponent:
    item_id: str
    required_per_unit: float
    available_stock: float
    max_producible: float
    is_bottleneck: bool = False


@dataclass
class ProducibleQuantity:
    item_id: str
    producible_quantity: int
    components: List[LimitingComponent] = field(default_factory=list)
    has_bom: bool = False

    @property
    def bottlenecks(self) -> List[LimitingComponent]:
        return [c for c in self.components if c.is_bottleneck]


# ═══════════════════════════════════════════════════════════════════════════════
# STOCK READ INTERFACE
# ═══════════════════════════════════════════════════════════════════════════════

class StockReader(ABC):
    """Read-only access to the inventory ledger."""

    @abstractmethod
    def stock_records(self, item_ids: Optional[Iterable[str]] = None) -> List[StockRecord]:
        """Records for the given items, or every record when ``item_ids`` is None."""


class InMemoryStockLedger(StockReader):

    def __init__(self, records: Iterable[StockRecord] = ()):
        self.records: List[StockRecord] = list(records)

    def add_record(self, record: StockRecord) -> None:
        self.records.append(record)

    def load_records(self, rows: Iterable[Dict]) -> None:
        models, errors = validate_rows(StockRow, rows)
        if errors:
            raise CatalogValidationError(f"{len(errors)} invalid stock rows", errors)
        self.records.extend(models)

    def load_from_dataframe(self, stock_df: pd.DataFrame) -> None:
        """Expected columns: item_id, location, on_hand, reserved."""
        self.load_records(dataframe_records(stock_df))

    def stock_records(self, item_ids: Optional[Iterable[str]] = None) -> List[StockRecord]:
        if item_ids is None:
            return list(self.records)
        wanted = set(item_ids)
        return [r for r in self.records if r.item_id in wanted]


# ═══════════════════════════════════════════════════════════════════════════════
# RESOLVER
# ═══════════════════════════════════════════════════════════════════════════════

class StockPositionResolver:
    """
    Aggregates stock records into availability per item.

    Usage:
        resolver = StockPositionResolver.from_reader(ledger)
        resolver.availability("RM-001").available
    """

    def __init__(self, records: Iterable[StockRecord] = ()):
        self._by_item: Dict[str, List[StockRecord]] = defaultdict(list)
        for record in records:
            self._by_item[record.item_id].append(record)

    @classmethod
    def from_reader(cls, reader: StockReader, item_ids: Optional[Iterable[str]] = None) -> StockPositionResolver:
        return cls(reader.stock_records(list(item_ids) if item_ids is not None else None))

    def availability(self, item_id: str, location: Optional[str] = None) -> StockAvailability:
        """Stock position across all locations, or at one location. Unknown items are all zeros."""
        records = self._by_item.get(item_id, [])
        if location is not None:
            records = [r for r in records if r.location == location]
        return StockAvailability(
            item_id=item_id,
            on_hand=sum(r.on_hand for r in records),
            reserved=sum(r.reserved for r in records),
        )

    def locations(self, item_id: str) -> List[str]:
        return sorted({r.location for r in self._by_item.get(item_id, [])})

    def to_dataframe(self) -> pd.DataFrame:
        rows = [self.availability(item_id).to_dict() for item_id in sorted(self._by_item)]
        return pd.DataFrame(rows, columns=["item_id", "on_hand", "reserved", "available"])


# ═══════════════════════════════════════════════════════════════════════════════
# BOM AVAILABILITY
# ═══════════════════════════════════════════════════════════════════════════════

def check_bom_availability(
    explosion: BOMExplosionEngine,
    resolver: StockPositionResolver,
    item_id: str,
    quantity: float,
    location: Optional[str] = None,
) -> BomAvailability:
    """Leaf components whose available stock does not cover building ``quantity``."""
    result = BomAvailability(item_id=item_id, quantity=quantity)

    for comp_id, required in explosion.leaf_requirements(item_id, quantity).items():
        available = resolver.availability(comp_id, location).available
        # 2 × 1.1 × 3 must still be covered by 6.6 in stock
        if round(required, 9) > round(available, 9):
            result.shortages.append(ComponentShortage(comp_id, required, available))

    return result


def producible_quantity(
    explosion: BOMExplosionEngine,
    resolver: StockPositionResolver,
    item_id: str,
    location: Optional[str] = None,
) -> ProducibleQuantity:
    """
    Maximum whole units of ``item_id`` buildable from current stock.

    Uses the leaf components of the BOM; an item without a BOM falls back to
    the materials of its process steps.
    """
    per_unit = explosion.leaf_requirements(item_id, 1.0)
    has_bom = bool(per_unit)

    if not has_bom:
        for step in explosion.catalog.get_process_steps(item_id):
            for sm in step.materials:
                qty = sm.quantity * (1 + sm.scrap_percentage / 100)
                per_unit[sm.component_id] = per_unit.get(sm.component_id, 0.0) + qty

    result = ProducibleQuantity(item_id=item_id, producible_quantity=0, has_bom=has_bom)
    if not per_unit:
        return result

    min_producible = math.inf
    for comp_id, required in per_unit.items():
        available = max(0.0, resolver.availability(comp_id, location).available)
        max_units = math.floor(round(available / required, 9)) if required > 0 else math.inf
        result.components.append(LimitingComponent(comp_id, required, available, max_units))
        min_producible = min(min_producible, max_units)

    for comp in result.components:
        comp.is_bottleneck = comp.max_producible == min_producible and min_producible < math.inf

    result.components.sort(key=lambda c: c.max_producible)
    result.producible_quantity = 0 if min_producible == math.inf else int(min_producible)
    return result
