"""
Material Planning - Catalog, operator-rate and order read interfaces.

The engines never talk to a store directly. They read through the abstract
interfaces below, and every top-level calculation works on a
``CatalogSnapshot`` captured once up front, so recursion runs over
in-memory structures and never observes the store changing mid-calculation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from material_planning.errors import CatalogValidationError, ItemNotFoundError
from material_planning.models import BomEdge, Item, OrderLine, ProcessStep
from material_planning.schemas import (
    BomEdgeRow,
    ItemRow,
    OrderLineRow,
    ProcessStepRow,
    validate_rows,
)

logger = logging.getLogger(__name__)


def dataframe_records(df: pd.DataFrame) -> List[Dict]:
    """DataFrame rows as dicts; NaN cells are dropped so schema defaults apply."""
    records = df.astype(object).where(pd.notna(df), None).to_dict("records")
    return [{k: v for k, v in row.items() if v is not None} for row in records]


# ═══════════════════════════════════════════════════════════════════════════════
# READ INTERFACES
# ═══════════════════════════════════════════════════════════════════════════════

class CatalogReader(ABC):
    """Read-only access to items, BOM edges and process steps."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[Item]:
        ...

    @abstractmethod
    def get_bom_edges(self, parent_id: str) -> List[BomEdge]:
        ...

    @abstractmethod
    def get_process_steps(self, item_id: str) -> List[ProcessStep]:
        ...

    @abstractmethod
    def list_items(self) -> List[Item]:
        ...

    def require_item(self, item_id: str) -> Item:
        item = self.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    def is_manufactured(self, item_id: str) -> bool:
        """An item is manufactured when it has a BOM or a process pipeline."""
        return bool(self.get_bom_edges(item_id)) or bool(self.get_process_steps(item_id))


class OperatorRateReader(ABC):
    """Average hourly rate of the operators qualified for an operation type."""

    @abstractmethod
    def average_hourly_rate(self, operation_type: str) -> Optional[float]:
        """
        Returns:
            The average rate, or None when no operator is qualified.
            A qualified operator paid 0 yields 0.0, not None.
        """

    def qualified_operator_count(self, operation_type: str) -> int:
        return 0


class OrderReader(ABC):
    """Sales order lines, open and historical."""

    @abstractmethod
    def order_lines(self, statuses: Sequence[str]) -> List[OrderLine]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# IN-MEMORY IMPLEMENTATIONS
# ═══════════════════════════════════════════════════════════════════════════════

class InMemoryCatalog(CatalogReader):
    """
    Catalog held in memory.

    Usage:
        catalog = InMemoryCatalog()
        catalog.load_records(items=[...], edges=[...], steps=[...])
        snapshot = CatalogSnapshot.capture(catalog, ["FG-001"])
    """

    def __init__(self):
        self.items: Dict[str, Item] = {}
        self._edges: Dict[str, List[BomEdge]] = defaultdict(list)
        self._steps: Dict[str, List[ProcessStep]] = defaultdict(list)

    def add_item(self, item: Item) -> None:
        self.items[item.item_id] = item

    def add_edge(self, edge: BomEdge) -> None:
        self._edges[edge.parent_id].append(edge)
        logger.debug(f"Added BOM edge: {edge.parent_id} -> {edge.component_id}")

    def add_step(self, step: ProcessStep) -> None:
        steps = self._steps[step.item_id]
        steps.append(step)
        steps.sort(key=lambda s: s.sequence)

    def get_item(self, item_id: str) -> Optional[Item]:
        return self.items.get(item_id)

    def get_bom_edges(self, parent_id: str) -> List[BomEdge]:
        return list(self._edges.get(parent_id, []))

    def get_process_steps(self, item_id: str) -> List[ProcessStep]:
        return list(self._steps.get(item_id, []))

    def list_items(self) -> List[Item]:
        return list(self.items.values())

    def load_records(
        self,
        items: Iterable[Dict] = (),
        edges: Iterable[Dict] = (),
        steps: Iterable[Dict] = (),
    ) -> None:
        """
        Validate and load raw rows.

        Raises:
            CatalogValidationError: listing every rejected row; nothing is
                loaded when any row is invalid.
        """
        item_models, item_errors = validate_rows(ItemRow, items)
        edge_models, edge_errors = validate_rows(BomEdgeRow, edges)
        step_models, step_errors = validate_rows(ProcessStepRow, steps)

        errors = item_errors + edge_errors + step_errors
        if errors:
            raise CatalogValidationError(f"{len(errors)} invalid catalog rows", errors)

        for item in item_models:
            self.add_item(item)
        for edge in edge_models:
            self.add_edge(edge)
        for step in step_models:
            self.add_step(step)

        logger.info(f"Loaded {len(item_models)} items, {len(edge_models)} BOM edges "
                    f"and {len(step_models)} process steps")

    def load_from_dataframe(
        self,
        items_df: pd.DataFrame,
        bom_df: Optional[pd.DataFrame] = None,
    ) -> None:
        """
        Load items and BOM edges from DataFrames.

        Expected columns:
        - items_df: item_id, sku, name, unit, cost, item_type, min_stock,
          reorder_point, reorder_quantity, lead_time_days, supplier_id, supplier_name
        - bom_df: parent_id, component_id, quantity_per_unit, scrap_percentage, unit
        """
        self.load_records(
            items=dataframe_records(items_df),
            edges=dataframe_records(bom_df) if bom_df is not None else (),
        )


class OperatorRateTable(OperatorRateReader):
    """Qualified operator rates per operation type."""

    def __init__(self, rates: Optional[Mapping[str, Sequence[float]]] = None):
        self._rates: Dict[str, List[float]] = {
            op: list(values) for op, values in (rates or {}).items()
        }

    def add_operator(self, operation_type: str, hourly_rate: float) -> None:
        self._rates.setdefault(operation_type, []).append(hourly_rate)

    def average_hourly_rate(self, operation_type: str) -> Optional[float]:
        rates = self._rates.get(operation_type)
        if not rates:
            return None
        return sum(rates) / len(rates)

    def qualified_operator_count(self, operation_type: str) -> int:
        return len(self._rates.get(operation_type, []))


class InMemoryOrderBook(OrderReader):
    """Order lines held in memory."""

    def __init__(self, lines: Iterable[OrderLine] = ()):
        self.lines: List[OrderLine] = list(lines)

    def add_line(self, line: OrderLine) -> None:
        self.lines.append(line)

    def load_records(self, rows: Iterable[Dict]) -> None:
        models, errors = validate_rows(OrderLineRow, rows)
        if errors:
            raise CatalogValidationError(f"{len(errors)} invalid order lines", errors)
        self.lines.extend(models)

    def order_lines(self, statuses: Sequence[str]) -> List[OrderLine]:
        wanted = {s.upper() for s in statuses}
        return [line for line in self.lines if line.status.upper() in wanted]


# ═══════════════════════════════════════════════════════════════════════════════
# SNAPSHOT
# ═══════════════════════════════════════════════════════════════════════════════

class CatalogSnapshot(CatalogReader):
    """
    The subgraph reachable from a set of roots, read once.

    Items reachable through BOM edges or step materials are included.
    Unknown ids are simply absent; callers turn that into NotFound or a
    warning depending on where the id appeared.
    """

    def __init__(
        self,
        items: Dict[str, Item],
        edges: Dict[str, List[BomEdge]],
        steps: Dict[str, List[ProcessStep]],
        captured_at: Optional[datetime] = None,
    ):
        self._items = items
        self._edges = edges
        self._steps = steps
        self.captured_at = captured_at or datetime.now()

    @classmethod
    def capture(cls, reader: CatalogReader, root_ids: Iterable[str]) -> CatalogSnapshot:
        items: Dict[str, Item] = {}
        edges: Dict[str, List[BomEdge]] = {}
        steps: Dict[str, List[ProcessStep]] = {}

        queue = deque(root_ids)
        seen = set()
        while queue:
            item_id = queue.popleft()
            if item_id in seen:
                continue
            seen.add(item_id)

            item = reader.get_item(item_id)
            if item is not None:
                items[item_id] = item

            item_edges = reader.get_bom_edges(item_id)
            item_steps = sorted(reader.get_process_steps(item_id), key=lambda s: s.sequence)
            edges[item_id] = item_edges
            steps[item_id] = item_steps

            queue.extend(e.component_id for e in item_edges)
            for step in item_steps:
                queue.extend(m.component_id for m in step.materials)

        logger.debug(f"Captured catalog snapshot: {len(items)} items, "
                     f"{sum(len(e) for e in edges.values())} edges")
        return cls(items, edges, steps)

    @classmethod
    def capture_all(cls, reader: CatalogReader) -> CatalogSnapshot:
        return cls.capture(reader, [item.item_id for item in reader.list_items()])

    def get_item(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def get_bom_edges(self, parent_id: str) -> List[BomEdge]:
        return self._edges.get(parent_id, [])

    def get_process_steps(self, item_id: str) -> List[ProcessStep]:
        return self._steps.get(item_id, [])

    def list_items(self) -> List[Item]:
        return list(self._items.values())
