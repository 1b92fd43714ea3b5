"""
Material Planning - Errors and data-quality warnings.

Exceptions are raised only for conditions fatal to a single call
(unknown item, invalid input). Data-quality anomalies are returned as
``DataQualityWarning`` records attached to the result they concern.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# EXCEPTIONS
# ═══════════════════════════════════════════════════════════════════════════════

class MaterialPlanningError(Exception):
    """Base error for the planning engines."""

    code = "PLANNING_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ItemNotFoundError(MaterialPlanningError):
    """Raised when an item id is unknown to the catalog snapshot."""

    code = "NOT_FOUND"

    def __init__(self, item_id: str):
        super().__init__(f"Item {item_id} not found", {"item_id": item_id})
        self.item_id = item_id


class InvalidInputError(MaterialPlanningError):
    """Raised before any computation when a quantity or horizon is not positive."""

    code = "INVALID_INPUT"


class CatalogValidationError(MaterialPlanningError):
    """Raised when raw catalog/stock/order rows fail schema validation."""

    code = "CATALOG_VALIDATION"

    def __init__(self, message: str, validation_errors: List[str]):
        super().__init__(message, {"validation_errors": validation_errors})
        self.validation_errors = validation_errors


def require_positive(value: float, name: str) -> None:
    """Reject zero, negative or NaN quantities."""
    if value is None or not value > 0:
        raise InvalidInputError(f"{name} must be positive, got {value!r}", {name: value})


# ═══════════════════════════════════════════════════════════════════════════════
# WARNINGS
# ═══════════════════════════════════════════════════════════════════════════════

class WarningKind(str, Enum):
    """Kinds of non-fatal data-quality findings."""
    CYCLIC_BOM = "cyclic_bom"
    MAX_DEPTH_EXCEEDED = "max_depth_exceeded"
    DEFAULT_RATE_USED = "default_rate_used"
    MISSING_RATE = "missing_rate"
    DUPLICATE_MATERIAL = "duplicate_material"
    UNKNOWN_COMPONENT = "unknown_component"


@dataclass(frozen=True)
class DataQualityWarning:
    """A non-fatal data-quality finding."""
    kind: WarningKind
    message: str
    item_id: Optional[str] = None
    path: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "item_id": self.item_id,
            "path": list(self.path),
        }


@dataclass(frozen=True)
class CalculationFailure:
    """A per-item failure collected by a batch operation."""
    item_id: str
    error: str
    code: str
    reference_id: Optional[str] = None

    @classmethod
    def from_error(cls, item_id: str, error: MaterialPlanningError,
                   reference_id: Optional[str] = None) -> CalculationFailure:
        return cls(item_id=item_id, error=error.message, code=error.code, reference_id=reference_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "error": self.error,
            "code": self.code,
            "reference_id": self.reference_id,
        }
