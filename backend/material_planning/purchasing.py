"""
Material Planning - Purchase Suggestion Grouper
===============================================

Groups requirements by preferred supplier into ready-to-place order drafts.

    aggregate cost      = Σ line cost
    suggested order on  = earliest line order date
    expected delivery   = suggested order date + max line lead time

Requirements without a supplier are never grouped; ``unsourced`` returns
them so the caller can surface them separately.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional

from material_planning.config import PlanningConfig
from material_planning.errors import InvalidInputError
from material_planning.requirements import Priority, Requirement

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# DATA STRUCTURES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SuggestedLine:
    item_id: str
    sku: str
    name: str
    quantity: float
    unit_cost: float
    total_cost: float
    lead_time_days: int

    def to_dict(self) -> Dict:
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "quantity": float(self.quantity),
            "unit_cost": float(self.unit_cost),
            "total_cost": float(self.total_cost),
            "lead_time_days": self.lead_time_days,
        }


@dataclass
class SuggestedPurchaseOrder:
    """Purchase-order suggestion for one supplier."""
    supplier_id: str
    supplier_name: str
    suggested_order_date: datetime
    lines: List[SuggestedLine] = field(default_factory=list)

    @property
    def total_cost(self) -> float:
        return sum(line.total_cost for line in self.lines)

    @property
    def max_lead_time_days(self) -> int:
        return max((line.lead_time_days for line in self.lines), default=0)

    @property
    def expected_delivery_date(self) -> datetime:
        return self.suggested_order_date + timedelta(days=self.max_lead_time_days)

    def to_dict(self) -> Dict:
        return {
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "items": [line.to_dict() for line in self.lines],
            "total_cost": float(self.total_cost),
            "suggested_order_date": self.suggested_order_date.isoformat(),
            "expected_delivery_date": self.expected_delivery_date.isoformat(),
        }


@dataclass(frozen=True)
class DraftLine:
    item_id: str
    quantity: float
    unit_price: float
    tax: float
    total: float


@dataclass
class PurchaseOrderDraft:
    """
    DRAFT purchase order built from a suggestion.

    Plain data: the writer that persists it must store header and lines in
    one transaction.
    """
    order_number: str
    supplier_id: str
    expected_date: date
    lines: List[DraftLine]
    subtotal: float
    tax: float
    total: float
    status: str = "DRAFT"
    notes: str = "Generated automatically from MRP"

    def to_dict(self) -> Dict:
        return {
            "order_number": self.order_number,
            "supplier_id": self.supplier_id,
            "status": self.status,
            "expected_date": self.expected_date.isoformat(),
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "total": float(self.total),
            "notes": self.notes,
            "lines": [
                {"item_id": line.item_id, "quantity": float(line.quantity), "unit_price": float(line.unit_price),
                 "tax": float(line.tax), "total": float(line.total)}
                for line in self.lines
            ],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# GROUPER
# ═══════════════════════════════════════════════════════════════════════════════

class PurchaseSuggestionGrouper:

    def __init__(self, config: Optional[PlanningConfig] = None):
        self.config = config or PlanningConfig()

    def _groupable(self, req: Requirement) -> bool:
        if not req.supplier_id or req.suggested_quantity <= 0:
            return False
        if req.priority == Priority.LOW and not self.config.include_low_priority_in_grouping:
            return False
        return True

    def group(self, requirements: Iterable[Requirement]) -> List[SuggestedPurchaseOrder]:
        """One suggestion per supplier, largest aggregate cost first."""
        by_supplier: Dict[str, SuggestedPurchaseOrder] = {}

        for req in requirements:
            if not self._groupable(req):
                continue

            order = by_supplier.get(req.supplier_id)
            if order is None:
                order = SuggestedPurchaseOrder(
                    supplier_id=req.supplier_id,
                    supplier_name=req.supplier_name or "N/A",
                    suggested_order_date=req.suggested_order_date,
                )
                by_supplier[req.supplier_id] = order
            elif req.suggested_order_date < order.suggested_order_date:
                order.suggested_order_date = req.suggested_order_date

            order.lines.append(SuggestedLine(
                item_id=req.item_id,
                sku=req.sku,
                name=req.name,
                quantity=req.suggested_quantity,
                unit_cost=req.unit_cost,
                total_cost=req.estimated_cost,
                lead_time_days=req.lead_time_days,
            ))

        suggestions = sorted(by_supplier.values(), key=lambda o: o.total_cost, reverse=True)
        logger.debug(f"Grouped requirements into {len(suggestions)} supplier suggestions")
        return suggestions

    @staticmethod
    def unsourced(requirements: Iterable[Requirement]) -> List[Requirement]:
        """Requirements that need ordering but have no supplier."""
        return [r for r in requirements if not r.supplier_id and r.suggested_quantity > 0]

    # ═══════════════════════════════════════════════════════════════════════════
    # DRAFTS
    # ═══════════════════════════════════════════════════════════════════════════

    def draft_purchase_order(
        self,
        suggestion: SuggestedPurchaseOrder,
        last_order_number: Optional[str] = None,
        today: Optional[date] = None,
    ) -> PurchaseOrderDraft:
        """
        Build a DRAFT purchase order for ``suggestion``.

        Args:
            suggestion: supplier suggestion from ``group``
            last_order_number: highest existing number of the current year, if any
            today: order date (defaults to today)
        """
        if not suggestion.lines:
            raise InvalidInputError(f"No requirements for supplier {suggestion.supplier_id}")

        today = today or date.today()
        tax_rate = self.config.purchase_tax_rate

        lines = []
        subtotal = 0.0
        for line in suggestion.lines:
            line_total = line.unit_cost * line.quantity
            subtotal += line_total
            lines.append(DraftLine(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=line.unit_cost,
                tax=line_total * tax_rate,
                total=line_total * (1 + tax_rate),
            ))

        tax = subtotal * tax_rate
        return PurchaseOrderDraft(
            order_number=next_order_number(last_order_number, today.year),
            supplier_id=suggestion.supplier_id,
            expected_date=today + timedelta(days=suggestion.max_lead_time_days),
            lines=lines,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
        )


def next_order_number(last_order_number: Optional[str], year: int) -> str:
    """``PO-<year>-<6 digits>``, continuing from the last number of the same year."""
    next_num = 1
    prefix = f"PO-{year}-"
    if last_order_number and last_order_number.startswith(prefix):
        match = re.search(r"(\d+)$", last_order_number)
        if match:
            next_num = int(match.group(1)) + 1
    return f"{prefix}{next_num:06d}"
