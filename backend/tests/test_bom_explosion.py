"""
Testes para o BOM Explosion Engine.
"""
import math

import pytest

from material_planning.bom_explosion import BOMExplosionEngine
from material_planning.config import PlanningConfig
from material_planning.errors import InvalidInputError, ItemNotFoundError, WarningKind
from material_planning.models import BomEdge, Item


class TestExplosionQuantities:
    """Quantidades com scrap propagado ao longo do caminho."""

    def test_two_level_example(self, simple_catalog):
        """A->B (2, 10%), B->C (1): B = 2.2 e C herda 2.2."""
        result = BOMExplosionEngine(simple_catalog).explode("A", 1)

        totals = result.aggregate()
        assert totals["B"] == pytest.approx(2.2)
        assert totals["C"] == pytest.approx(2.2)
        assert not result.warnings

    def test_lines_carry_depth_and_leaf_flag(self, simple_catalog):
        result = BOMExplosionEngine(simple_catalog).explode("A", 1)

        by_component = {line.component_id: line for line in result.lines}
        assert by_component["B"].depth == 1
        assert by_component["B"].is_leaf is False
        assert by_component["C"].depth == 2
        assert by_component["C"].is_leaf is True
        assert by_component["C"].path == ("A", "B")

    def test_quantity_is_product_along_path(self, make_catalog):
        catalog = make_catalog(
            items=[Item(i, i) for i in ("P", "Q", "R", "S")],
            edges=[
                BomEdge("P", "Q", 3, scrap_percentage=5),
                BomEdge("Q", "R", 2, scrap_percentage=50),
                BomEdge("R", "S", 0.5),
            ],
        )
        result = BOMExplosionEngine(catalog).explode("P", 4)

        expected_q = 4 * 3 * 1.05
        expected_r = expected_q * 2 * 1.5
        expected_s = expected_r * 0.5
        totals = result.aggregate()
        assert totals["Q"] == pytest.approx(expected_q)
        assert totals["R"] == pytest.approx(expected_r)
        assert totals["S"] == pytest.approx(expected_s)

    def test_scales_with_quantity(self, simple_catalog):
        engine = BOMExplosionEngine(simple_catalog)
        assert engine.explode("A", 10).aggregate()["C"] == pytest.approx(22.0)

    def test_shared_component_emits_one_line_per_path(self, make_catalog):
        """Diamante: D aparece por dois caminhos e não é ciclo."""
        catalog = make_catalog(
            items=[Item(i, i) for i in ("A", "B", "C", "D")],
            edges=[
                BomEdge("A", "B", 1),
                BomEdge("A", "C", 2),
                BomEdge("B", "D", 1),
                BomEdge("C", "D", 1),
            ],
        )
        result = BOMExplosionEngine(catalog).explode("A", 1)

        d_lines = [line for line in result.lines if line.component_id == "D"]
        assert len(d_lines) == 2
        assert result.aggregate()["D"] == pytest.approx(3.0)
        assert not result.has_cycles

    def test_leaf_requirements_only_leaves(self, simple_catalog):
        leaves = BOMExplosionEngine(simple_catalog).leaf_requirements("A", 1)
        assert leaves == {"C": pytest.approx(2.2)}

    def test_item_without_bom_explodes_to_nothing(self, simple_catalog):
        result = BOMExplosionEngine(simple_catalog).explode("C", 5)
        assert result.lines == []
        assert result.depth == 0


class TestExplosionValidation:

    def test_unknown_root_raises(self, simple_catalog):
        with pytest.raises(ItemNotFoundError) as exc:
            BOMExplosionEngine(simple_catalog).explode("NOPE", 1)
        assert exc.value.code == "NOT_FOUND"

    @pytest.mark.parametrize("quantity", [0, -1, math.nan])
    def test_non_positive_quantity_rejected(self, simple_catalog, quantity):
        with pytest.raises(InvalidInputError):
            BOMExplosionEngine(simple_catalog).explode("A", quantity)


class TestCycles:
    """Ciclos terminam sempre e ficam reportados."""

    def test_two_node_cycle_terminates(self, make_catalog):
        catalog = make_catalog(
            items=[Item("A", "A"), Item("B", "B")],
            edges=[BomEdge("A", "B", 1), BomEdge("B", "A", 1)],
        )
        result = BOMExplosionEngine(catalog).explode("A", 1)

        assert len(result.lines) == 2
        assert result.has_cycles
        cycle = [w for w in result.warnings if w.kind == WarningKind.CYCLIC_BOM][0]
        assert cycle.path == ("A", "B", "A")

    def test_self_loop_terminates(self, make_catalog):
        catalog = make_catalog(items=[Item("X", "X")], edges=[BomEdge("X", "X", 2)])
        result = BOMExplosionEngine(catalog).explode("X", 1)

        assert len(result.lines) == 1
        assert result.has_cycles

    def test_cycle_below_root(self, make_catalog):
        catalog = make_catalog(
            items=[Item(i, i) for i in ("R", "A", "B", "C")],
            edges=[
                BomEdge("R", "A", 1),
                BomEdge("A", "B", 1),
                BomEdge("B", "A", 1),
                BomEdge("B", "C", 1),
            ],
        )
        result = BOMExplosionEngine(catalog).explode("R", 1)

        assert result.has_cycles
        assert result.aggregate(leaves_only=True) == {"C": pytest.approx(1.0)}

    def test_max_depth_guard(self, simple_catalog):
        engine = BOMExplosionEngine(simple_catalog, PlanningConfig(max_bom_depth=1))
        result = engine.explode("A", 1)

        assert [line.component_id for line in result.lines] == ["B"]
        assert result.warnings[0].kind == WarningKind.MAX_DEPTH_EXCEEDED

    def test_would_create_cycle(self, simple_catalog):
        engine = BOMExplosionEngine(simple_catalog)

        assert engine.would_create_cycle("C", "A") is True
        assert engine.would_create_cycle("A", "A") is True
        assert engine.would_create_cycle("A", "C") is False


class TestDerivedViews:

    def test_bom_depth(self, simple_catalog):
        engine = BOMExplosionEngine(simple_catalog)
        assert engine.bom_depth("A") == 2
        assert engine.bom_depth("B") == 1
        assert engine.bom_depth("C") == 0

    def test_material_cost_counts_leaves_only(self, simple_catalog):
        # B costs 10 but is an intermediate assembly
        assert BOMExplosionEngine(simple_catalog).material_cost("A", 1) == pytest.approx(4.4)

    def test_to_dataframe(self, simple_catalog):
        df = BOMExplosionEngine(simple_catalog).to_dataframe("A", 1)

        assert list(df.columns) == ["depth", "component_id", "component_name", "parent_id",
                                    "total_quantity", "unit", "is_leaf", "unit_cost"]
        assert len(df) == 2
        row = df[df["component_id"] == "C"].iloc[0]
        assert row["component_name"] == "Raw C"
        assert row["total_quantity"] == pytest.approx(2.2)

    def test_to_dict(self, simple_catalog):
        data = BOMExplosionEngine(simple_catalog).explode("A", 1).to_dict()
        assert data["root_id"] == "A"
        assert len(data["lines"]) == 2
        assert data["warnings"] == []
