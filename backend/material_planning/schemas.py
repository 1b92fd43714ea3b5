"""
════════════════════════════════════════════════════════════════════════════════
MATERIAL PLANNING SCHEMAS - Pydantic models for raw row validation
════════════════════════════════════════════════════════════════════════════════

Raw rows (dicts, DataFrame records) coming from the catalog, stock ledger and
order stores are validated here before they become engine dataclasses.

Schemas:
- ItemRow: catalog item with stock policy fields
- BomEdgeRow: parent -> component edge
- ProcessStepRow: manufacturing phase with its materials
- StockRow: stock at one location
- OrderLineRow: sales order line
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from material_planning.models import (
    BomEdge,
    Item,
    ItemType,
    OrderLine,
    ProcessStep,
    StepMaterial,
    StockRecord,
)


# ═══════════════════════════════════════════════════════════════════════════════
# SCHEMAS
# ═══════════════════════════════════════════════════════════════════════════════

class ItemRow(BaseModel):
    """Catalog item row."""

    item_id: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    name: str = ""
    unit: str = "pcs"
    cost: float = Field(0.0, ge=0)
    item_type: ItemType = ItemType.RAW_MATERIAL
    min_stock: float = Field(0.0, ge=0)
    reorder_point: float = Field(0.0, ge=0)
    reorder_quantity: float = Field(0.0, ge=0)
    lead_time_days: Optional[int] = Field(None, ge=0)
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    is_active: bool = True

    @field_validator("item_type", mode="before")
    @classmethod
    def parse_item_type(cls, v):
        """Accept enum values in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("item_id", "sku", "supplier_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        """Identifiers may arrive as integers from spreadsheets."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def to_model(self) -> Item:
        return Item(**self.model_dump())


class BomEdgeRow(BaseModel):
    """BOM edge row."""

    parent_id: str
    component_id: str
    quantity_per_unit: float = Field(..., gt=0)
    scrap_percentage: float = Field(0.0, ge=0, lt=100)
    unit: str = "pcs"

    @field_validator("parent_id", "component_id", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        return v if isinstance(v, str) else str(v)

    def to_model(self) -> BomEdge:
        return BomEdge(**self.model_dump())


class StepMaterialRow(BaseModel):
    component_id: str
    quantity: float = Field(..., ge=0)
    scrap_percentage: float = Field(0.0, ge=0, lt=100)
    unit: str = "pcs"


class ProcessStepRow(BaseModel):
    """Process step row with nested material lines."""

    step_id: str
    item_id: str
    sequence: int = Field(..., ge=0)
    name: str = ""
    operation_type: Optional[str] = None
    standard_time: float = Field(0.0, ge=0)
    setup_time: Optional[float] = Field(0.0, ge=0)
    is_external: bool = False
    external_unit_cost: Optional[float] = Field(0.0, ge=0)
    materials: List[StepMaterialRow] = Field(default_factory=list)

    def to_model(self) -> ProcessStep:
        return ProcessStep(
            step_id=self.step_id,
            item_id=self.item_id,
            sequence=self.sequence,
            name=self.name,
            operation_type=self.operation_type,
            standard_time=self.standard_time,
            setup_time=self.setup_time or 0.0,
            is_external=self.is_external,
            external_unit_cost=self.external_unit_cost or 0.0,
            materials=[StepMaterial(**m.model_dump()) for m in self.materials],
        )


class StockRow(BaseModel):
    """Stock ledger row."""

    item_id: str
    location: str = "MAIN"
    on_hand: float = 0.0
    reserved: float = Field(0.0, ge=0)

    def to_model(self) -> StockRecord:
        return StockRecord(**self.model_dump())


class OrderLineRow(BaseModel):
    """Sales order line row."""

    order_id: str
    item_id: str
    quantity: float = Field(..., gt=0)
    order_date: Union[datetime, date]
    status: str = "CONFIRMED"
    needed_by: Optional[Union[datetime, date]] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        return v.strip().upper() if isinstance(v, str) else v

    def to_model(self) -> OrderLine:
        return OrderLine(
            order_id=self.order_id,
            item_id=self.item_id,
            quantity=self.quantity,
            order_date=_as_datetime(self.order_date),
            status=self.status,
            needed_by=_as_datetime(self.needed_by) if self.needed_by else None,
        )


def _as_datetime(value: Union[datetime, date]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


# ═══════════════════════════════════════════════════════════════════════════════
# BATCH VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_rows(
    schema: Type[SchemaT],
    rows: Iterable[Dict[str, Any]],
) -> Tuple[List[Any], List[str]]:
    """
    Validate raw rows against a schema.

    Returns:
        (models, errors) where models are the engine dataclasses of the valid
        rows and errors are human-readable messages for the rejected ones.
    """
    models: List[Any] = []
    errors: List[str] = []

    for idx, row in enumerate(rows):
        try:
            models.append(schema.model_validate(row).to_model())
        except ValidationError as e:
            for err in e.errors():
                loc = ".".join(str(part) for part in err.get("loc", ()))
                errors.append(f"{schema.__name__} row {idx}: {loc}: {err.get('msg')}")

    return models, errors
