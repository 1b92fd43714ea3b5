"""
Fixtures comuns para os testes de material planning.
"""
import pytest
from datetime import datetime, timedelta

from material_planning.catalog import InMemoryCatalog, InMemoryOrderBook, OperatorRateTable
from material_planning.config import PlanningConfig
from material_planning.models import (
    BomEdge,
    Item,
    ItemType,
    OrderLine,
    ProcessStep,
    StepMaterial,
    StockRecord,
)
from material_planning.stock import InMemoryStockLedger, StockPositionResolver


NOW = datetime(2026, 3, 2, 8, 0, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Relógio fixo para resultados determinísticos."""
    return lambda: NOW


@pytest.fixture
def config():
    return PlanningConfig()


@pytest.fixture
def make_catalog():
    """Factory: InMemoryCatalog a partir de listas de items/edges/steps."""
    def _make(items=(), edges=(), steps=()):
        catalog = InMemoryCatalog()
        for item in items:
            catalog.add_item(item)
        for edge in edges:
            catalog.add_edge(edge)
        for step in steps:
            catalog.add_step(step)
        return catalog
    return _make


@pytest.fixture
def make_resolver():
    """Factory: resolver com um registo MAIN por item ({item_id: on_hand} ou (on_hand, reserved))."""
    def _make(levels):
        records = []
        for item_id, level in levels.items():
            on_hand, reserved = level if isinstance(level, tuple) else (level, 0.0)
            records.append(StockRecord(item_id=item_id, on_hand=on_hand, reserved=reserved))
        return StockPositionResolver(records)
    return _make


# ═══════════════════════════════════════════════════════════════════════════════
# BOM SIMPLES: A -> B (2, 10% scrap) -> C (1)
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def simple_items():
    return [
        Item("A", "SKU-A", "Assembly A", item_type=ItemType.FINISHED_GOOD, cost=50.0),
        Item("B", "SKU-B", "Sub-assembly B", item_type=ItemType.SEMI_FINISHED, cost=10.0),
        Item("C", "SKU-C", "Raw C", item_type=ItemType.RAW_MATERIAL, cost=2.0,
             supplier_id="S1", supplier_name="Steel Co", lead_time_days=5),
    ]


@pytest.fixture
def simple_catalog(make_catalog, simple_items):
    return make_catalog(
        items=simple_items,
        edges=[
            BomEdge("A", "B", 2, scrap_percentage=10),
            BomEdge("B", "C", 1),
        ],
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CUSTOS: FG-001 com fases, sub-assembly SA-001 e embalagem comprada
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def cost_items():
    return [
        Item("FG-001", "FG-001", "Cabinet", item_type=ItemType.FINISHED_GOOD),
        Item("SA-001", "SA-001", "Frame", item_type=ItemType.SEMI_FINISHED),
        Item("RM-STEEL", "RM-STEEL", "Steel sheet", unit="kg", cost=4.0),
        Item("RM-BOLT", "RM-BOLT", "Bolt M6", cost=0.5),
        Item("PK-BOX", "PK-BOX", "Carton box", item_type=ItemType.PACKAGING, cost=1.25),
    ]


@pytest.fixture
def cost_steps():
    return [
        ProcessStep("S1", "FG-001", 10, "Cutting", operation_type="CUT",
                    standard_time=2, setup_time=30,
                    materials=[StepMaterial("RM-STEEL", 1.5, unit="kg")]),
        ProcessStep("S2", "FG-001", 20, "Painting", is_external=True, external_unit_cost=3.0),
        ProcessStep("S3", "SA-001", 10, "Assembly", operation_type="ASM",
                    standard_time=6, setup_time=0,
                    materials=[StepMaterial("RM-BOLT", 4)]),
    ]


@pytest.fixture
def cost_catalog(make_catalog, cost_items, cost_steps):
    return make_catalog(
        items=cost_items,
        edges=[
            BomEdge("FG-001", "SA-001", 2),
            BomEdge("FG-001", "PK-BOX", 1),
        ],
        steps=cost_steps,
    )


@pytest.fixture
def rates():
    return OperatorRateTable({"CUT": [28.0, 32.0], "ASM": [24.0]})


# ═══════════════════════════════════════════════════════════════════════════════
# MRP: produto com três materiais, dois do fornecedor S1
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mrp_items():
    return [
        Item("FG-100", "FG-100", "Shelf unit", item_type=ItemType.FINISHED_GOOD, cost=80.0),
        Item("RM-A", "RM-A", "Board", cost=5.0, min_stock=5, reorder_point=10,
             lead_time_days=10, supplier_id="S1", supplier_name="Wood Supplies"),
        Item("RM-B", "RM-B", "Screw", cost=0.1, min_stock=100, reorder_point=200,
             reorder_quantity=500, supplier_id="S1", supplier_name="Wood Supplies"),
        Item("RM-C", "RM-C", "Glue", cost=3.0, min_stock=1, reorder_point=2),
        Item("RM-D", "RM-D", "Hinge", cost=1.0, min_stock=10, reorder_point=20,
             reorder_quantity=40, lead_time_days=3, supplier_id="S2", supplier_name="Hardware Ltd"),
    ]


@pytest.fixture
def mrp_catalog(make_catalog, mrp_items):
    return make_catalog(
        items=mrp_items,
        edges=[
            BomEdge("FG-100", "RM-A", 4),
            BomEdge("FG-100", "RM-B", 16),
            BomEdge("FG-100", "RM-C", 0.25),
        ],
    )


@pytest.fixture
def mrp_ledger():
    return InMemoryStockLedger([
        StockRecord("RM-A", "MAIN", on_hand=10, reserved=4),
        StockRecord("RM-A", "WH2", on_hand=2),
        StockRecord("RM-B", "MAIN", on_hand=1000, reserved=0),
        StockRecord("RM-C", "MAIN", on_hand=0),
        StockRecord("RM-D", "MAIN", on_hand=15),
    ])


@pytest.fixture
def order_book():
    return InMemoryOrderBook([
        OrderLine("SO-1", "FG-100", 5, NOW - timedelta(days=2), "CONFIRMED",
                  needed_by=NOW + timedelta(days=20)),
        OrderLine("SO-2", "FG-100", 5, NOW - timedelta(days=1), "PROCESSING",
                  needed_by=NOW + timedelta(days=14)),
        OrderLine("SO-3", "FG-100", 100, NOW - timedelta(days=1), "DRAFT",
                  needed_by=NOW + timedelta(days=14)),
    ])
