"""
════════════════════════════════════════════════════════════════════════════════
MATERIAL PLANNING - BOM explosion, cost roll-up and MRP
════════════════════════════════════════════════════════════════════════════════

Planning core of the manufacturing backend:

1. **BOM Explosion**: multi-level, scrap-aware, cycle-safe
2. **Cost Roll-Up**: materials, labor, external work and sub-assemblies
3. **Stock Position**: available = on hand - reserved, across locations
4. **Net Requirements**: order-driven, production request, reorder-point scan
5. **Purchase Suggestions**: requirements grouped per supplier, PO drafts
6. **Demand Forecast**: historical average with confidence tiers

Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │  MaterialPlanningService                                 │
    ├──────────────────────────────────────────────────────────┤
    │  CatalogSnapshot ──► BOMExplosionEngine                  │
    │                  ──► CostRollupEngine ◄── OperatorRates  │
    │  StockPositionResolver ──► NetRequirementsCalculator     │
    │                            ──► PurchaseSuggestionGrouper │
    │  OrderReader ──► DemandForecaster                        │
    └──────────────────────────────────────────────────────────┘
"""

from material_planning.bom_explosion import BOMExplosionEngine, ExplodedLine, ExplosionResult
from material_planning.catalog import (
    CatalogReader,
    CatalogSnapshot,
    InMemoryCatalog,
    InMemoryOrderBook,
    OperatorRateReader,
    OperatorRateTable,
    OrderReader,
)
from material_planning.config import OverheadAllocation, PlanningConfig, SetupCostBasis
from material_planning.cost_rollup import CostBreakdown, CostRollupEngine, ExplodedMaterial, StepCost
from material_planning.errors import (
    CalculationFailure,
    CatalogValidationError,
    DataQualityWarning,
    InvalidInputError,
    ItemNotFoundError,
    MaterialPlanningError,
    WarningKind,
)
from material_planning.forecasting import ConfidenceTier, DemandForecast, DemandForecaster
from material_planning.models import (
    BomEdge,
    Item,
    ItemType,
    OrderLine,
    ProcessStep,
    StepMaterial,
    StockRecord,
)
from material_planning.purchasing import (
    PurchaseOrderDraft,
    PurchaseSuggestionGrouper,
    SuggestedPurchaseOrder,
)
from material_planning.requirements import (
    NetRequirementsCalculator,
    NettingResult,
    Priority,
    Requirement,
)
from material_planning.service import BatchCostResult, MaterialPlanningService, MRPRunResult
from material_planning.stock import (
    InMemoryStockLedger,
    StockAvailability,
    StockPositionResolver,
    StockReader,
    check_bom_availability,
    producible_quantity,
)

__all__ = [
    # Config
    "PlanningConfig",
    "SetupCostBasis",
    "OverheadAllocation",
    # Errors
    "MaterialPlanningError",
    "ItemNotFoundError",
    "InvalidInputError",
    "CatalogValidationError",
    "DataQualityWarning",
    "WarningKind",
    "CalculationFailure",
    # Models
    "Item",
    "ItemType",
    "BomEdge",
    "ProcessStep",
    "StepMaterial",
    "StockRecord",
    "OrderLine",
    # Catalog
    "CatalogReader",
    "CatalogSnapshot",
    "InMemoryCatalog",
    "OperatorRateReader",
    "OperatorRateTable",
    "OrderReader",
    "InMemoryOrderBook",
    # Engines
    "BOMExplosionEngine",
    "ExplodedLine",
    "ExplosionResult",
    "CostRollupEngine",
    "CostBreakdown",
    "StepCost",
    "ExplodedMaterial",
    "StockReader",
    "InMemoryStockLedger",
    "StockAvailability",
    "StockPositionResolver",
    "check_bom_availability",
    "producible_quantity",
    "NetRequirementsCalculator",
    "NettingResult",
    "Priority",
    "Requirement",
    "PurchaseSuggestionGrouper",
    "SuggestedPurchaseOrder",
    "PurchaseOrderDraft",
    "DemandForecaster",
    "DemandForecast",
    "ConfidenceTier",
    # Service
    "MaterialPlanningService",
    "MRPRunResult",
    "BatchCostResult",
]

__version__ = "1.0.0"
