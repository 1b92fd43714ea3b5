"""
Testes para o Cost Roll-Up Engine.

Cenário base (conftest): FG-001 = Cutting (CUT, 2 min/un + 30 min setup,
1.5 kg steel) + Painting externo (3.0/un) + 2 × SA-001 + 1 × PK-BOX.
SA-001 = Assembly (ASM, 6 min/un, 4 bolts).
"""
import pytest

from material_planning.catalog import CatalogSnapshot, OperatorRateTable
from material_planning.config import OverheadAllocation, PlanningConfig, SetupCostBasis
from material_planning.cost_rollup import CostRollupEngine, RateSource
from material_planning.errors import InvalidInputError, ItemNotFoundError, WarningKind
from material_planning.models import BomEdge, Item, ItemType, ProcessStep, StepMaterial


@pytest.fixture
def engine(cost_catalog, rates, config):
    return CostRollupEngine(cost_catalog, rates, config)


class TestCostBreakdown:

    def test_single_unit_breakdown(self, engine):
        cost = engine.calculate_cost("FG-001", 1)

        # steel 1.5 × 4.0 + box 1 × 1.25
        assert cost.material_cost == pytest.approx(7.25)
        # 30/h × (2 + 30) min
        assert cost.labor_cost == pytest.approx(16.0)
        assert cost.external_cost == pytest.approx(3.0)
        # SA-001 × 2: 24/h × 12 min + 8 bolts × 0.5
        assert cost.sub_assembly_cost == pytest.approx(8.8)
        assert cost.overhead_cost == 0.0
        assert cost.total_cost == pytest.approx(35.05)
        assert cost.unit_cost == pytest.approx(35.05)
        assert cost.warnings == []

    def test_ten_units(self, engine):
        cost = engine.calculate_cost("FG-001", 10)

        assert cost.labor_cost == pytest.approx(25.0)  # 30/h × (20 + 30) min
        assert cost.total_cost == pytest.approx(215.5)
        assert cost.unit_cost == pytest.approx(21.55)

    def test_steps_in_sequence_order(self, engine):
        cost = engine.calculate_cost("FG-001", 1)

        assert [s.step_id for s in cost.steps] == ["S1", "S2"]
        cutting = cost.steps[0]
        assert cutting.hourly_rate == pytest.approx(30.0)
        assert cutting.rate_source == RateSource.OPERATORS
        assert cutting.operator_count == 2
        assert cutting.time_minutes == pytest.approx(32.0)

    def test_exploded_materials_carry_origin(self, engine):
        cost = engine.calculate_cost("FG-001", 1)

        bolts = [m for m in cost.exploded_materials if m.material_id == "RM-BOLT"]
        assert len(bolts) == 1
        assert bolts[0].origin_item_id == "SA-001"
        assert bolts[0].step_id == "S3"
        assert bolts[0].origin == "SA-001 <- FG-001"

        box = [m for m in cost.exploded_materials if m.material_id == "PK-BOX"][0]
        assert box.step_id is None
        assert box.total_cost == pytest.approx(1.25)

        assert cost.material_totals() == {
            "RM-STEEL": pytest.approx(1.5),
            "PK-BOX": pytest.approx(1.0),
            "RM-BOLT": pytest.approx(8.0),
        }

    def test_sub_assembly_breakdown_attached(self, engine):
        cost = engine.calculate_cost("FG-001", 1)

        assert len(cost.sub_assemblies) == 1
        frame = cost.sub_assemblies[0]
        assert frame.item_id == "SA-001"
        assert frame.quantity == pytest.approx(2.0)
        assert frame.labor_cost == pytest.approx(4.8)

    def test_sub_assembly_quantity_includes_edge_scrap(self, make_catalog, cost_items, cost_steps, rates):
        catalog = make_catalog(
            items=cost_items,
            edges=[BomEdge("FG-001", "SA-001", 2, scrap_percentage=50)],
            steps=cost_steps,
        )
        cost = CostRollupEngine(catalog, rates).calculate_cost("FG-001", 1)

        assert cost.sub_assemblies[0].quantity == pytest.approx(3.0)

    def test_summary_and_dict(self, engine):
        cost = engine.calculate_cost("FG-001", 1)

        summary = cost.summary()
        assert summary["steps_count"] == 2
        assert summary["sub_assemblies_count"] == 1
        assert summary["total_cost"] == pytest.approx(35.05)
        assert cost.to_dict()["sub_assemblies"][0]["item_id"] == "SA-001"


class TestLinearity:
    """Custo linear na quantidade, exceto o setup que é pago uma vez por run."""

    def test_linear_without_setup(self, make_catalog, cost_items, rates):
        steps = [
            ProcessStep("S1", "FG-001", 10, "Cutting", operation_type="CUT", standard_time=2,
                        materials=[StepMaterial("RM-STEEL", 1.5, scrap_percentage=10)]),
            ProcessStep("S2", "FG-001", 20, "Painting", is_external=True, external_unit_cost=3.0),
            ProcessStep("S3", "SA-001", 10, "Assembly", operation_type="ASM", standard_time=6,
                        materials=[StepMaterial("RM-BOLT", 4)]),
        ]
        catalog = make_catalog(
            items=cost_items,
            edges=[BomEdge("FG-001", "SA-001", 2), BomEdge("FG-001", "PK-BOX", 1)],
            steps=steps,
        )
        engine = CostRollupEngine(catalog, rates)

        for qty in (1, 3, 7.5):
            single = engine.calculate_cost("FG-001", qty).total_cost
            double = engine.calculate_cost("FG-001", 2 * qty).total_cost
            assert double == pytest.approx(2 * single)

    def test_setup_not_doubled(self, engine):
        one = engine.calculate_cost("FG-001", 1)
        two = engine.calculate_cost("FG-001", 2)

        # only the standard time of S1 scales: 30/h × 2 min
        assert two.steps[0].labor_cost - one.steps[0].labor_cost == pytest.approx(1.0)
        assert two.total_cost < 2 * one.total_cost

    def test_per_unit_setup_basis(self, cost_catalog, rates):
        engine = CostRollupEngine(cost_catalog, rates, PlanningConfig(setup_cost_basis=SetupCostBasis.PER_UNIT))
        cost = engine.calculate_cost("FG-001", 10)

        # 30/h × (2 + 30) min × 10
        assert cost.labor_cost == pytest.approx(160.0)


class TestRateResolution:

    def _single_step_catalog(self, make_catalog, operation_type="WELD"):
        return make_catalog(
            items=[Item("P-1", "P-1", "Bracket", item_type=ItemType.SEMI_FINISHED)],
            steps=[ProcessStep("W1", "P-1", 10, "Welding", operation_type=operation_type,
                               standard_time=60)],
        )

    def test_default_rate_with_warning(self, make_catalog):
        catalog = self._single_step_catalog(make_catalog)
        cost = CostRollupEngine(catalog, OperatorRateTable()).calculate_cost("P-1", 1)

        assert cost.labor_cost == pytest.approx(25.0)
        assert cost.steps[0].rate_source == RateSource.DEFAULT
        assert [w.kind for w in cost.warnings] == [WarningKind.DEFAULT_RATE_USED]

    def test_no_rate_costs_zero_with_warning(self, make_catalog):
        catalog = self._single_step_catalog(make_catalog)
        engine = CostRollupEngine(catalog, OperatorRateTable(), PlanningConfig(default_hourly_rate=None))
        cost = engine.calculate_cost("P-1", 1)

        assert cost.labor_cost == 0.0
        assert cost.steps[0].rate_source == RateSource.NONE
        assert [w.kind for w in cost.warnings] == [WarningKind.MISSING_RATE]

    def test_operator_paid_zero_is_not_missing(self, make_catalog):
        catalog = self._single_step_catalog(make_catalog)
        cost = CostRollupEngine(catalog, OperatorRateTable({"WELD": [0.0]})).calculate_cost("P-1", 1)

        assert cost.labor_cost == 0.0
        assert cost.steps[0].rate_source == RateSource.OPERATORS
        assert cost.warnings == []

    def test_step_without_operation_type_uses_default(self, make_catalog):
        catalog = self._single_step_catalog(make_catalog, operation_type=None)
        cost = CostRollupEngine(catalog, OperatorRateTable({"WELD": [40.0]})).calculate_cost("P-1", 1)

        assert cost.labor_cost == pytest.approx(25.0)


class TestOverhead:

    def test_percent_of_labor_uses_rolled_up_labor(self, cost_catalog, rates):
        config = PlanningConfig(overhead_allocation=OverheadAllocation.PERCENT_OF_LABOR, overhead_percent=10)
        cost = CostRollupEngine(cost_catalog, rates, config).calculate_cost("FG-001", 1)

        # (16.0 + 4.8) × 10%
        assert cost.overhead_cost == pytest.approx(2.08)
        assert cost.sub_assemblies[0].overhead_cost == 0.0

    def test_percent_of_total(self, cost_catalog, rates):
        config = PlanningConfig(overhead_allocation=OverheadAllocation.PERCENT_OF_TOTAL, overhead_percent=10)
        cost = CostRollupEngine(cost_catalog, rates, config).calculate_cost("FG-001", 1)

        assert cost.overhead_cost == pytest.approx(3.505)
        assert cost.total_cost == pytest.approx(38.555)


class TestDataQuality:

    def test_cycle_reported_not_fatal(self, make_catalog, rates):
        catalog = make_catalog(
            items=[Item("X", "X", "X"), Item("Y", "Y", "Y"), Item("M", "M", "M", cost=1.0)],
            edges=[BomEdge("X", "Y", 1), BomEdge("Y", "X", 1), BomEdge("Y", "M", 2)],
        )
        cost = CostRollupEngine(catalog, rates).calculate_cost("X", 1)

        assert any(w.kind == WarningKind.CYCLIC_BOM for w in cost.warnings)
        assert cost.total_cost == pytest.approx(2.0)

    def test_unknown_component_costed_zero(self, make_catalog, rates):
        catalog = make_catalog(
            items=[Item("P", "P", "Parent")],
            edges=[BomEdge("P", "GHOST", 3)],
        )
        cost = CostRollupEngine(catalog, rates).calculate_cost("P", 1)

        assert cost.material_cost == 0.0
        assert [w.kind for w in cost.warnings] == [WarningKind.UNKNOWN_COMPONENT]

    def test_duplicate_material_warned_once(self, make_catalog, cost_items, cost_steps, rates):
        steps = cost_steps + [
            ProcessStep("S9", "FG-001", 30, "Fixing", operation_type="ASM", standard_time=1,
                        materials=[StepMaterial("RM-BOLT", 2)]),
        ]
        catalog = make_catalog(
            items=cost_items,
            edges=[BomEdge("FG-001", "SA-001", 2)],
            steps=steps,
        )
        cost = CostRollupEngine(catalog, rates).calculate_cost("FG-001", 1)

        duplicates = [w for w in cost.warnings if w.kind == WarningKind.DUPLICATE_MATERIAL]
        assert len(duplicates) == 1
        assert duplicates[0].item_id == "RM-BOLT"

    def test_works_over_snapshot(self, cost_catalog, rates):
        snapshot = CatalogSnapshot.capture(cost_catalog, ["FG-001"])
        cost = CostRollupEngine(snapshot, rates).calculate_cost("FG-001", 1)
        assert cost.total_cost == pytest.approx(35.05)


class TestCostValidation:

    def test_unknown_item(self, engine):
        with pytest.raises(ItemNotFoundError):
            engine.calculate_cost("NOPE", 1)

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_invalid_quantity(self, engine, quantity):
        with pytest.raises(InvalidInputError):
            engine.calculate_cost("FG-001", quantity)


class TestDepthGuard:

    @pytest.fixture
    def deep_catalog(self, make_catalog):
        return make_catalog(
            items=[Item("X", "X", "X"), Item("Y", "Y", "Y"), Item("Z", "Z", "Z"), Item("M", "M", "M", cost=1.0)],
            edges=[BomEdge("X", "Y", 1), BomEdge("Y", "Z", 1), BomEdge("Z", "M", 1)],
        )

    def test_within_limit(self, deep_catalog, rates):
        cost = CostRollupEngine(deep_catalog, rates).calculate_cost("X", 1)

        assert cost.total_cost == pytest.approx(1.0)
        assert cost.warnings == []

    def test_components_below_limit_not_costed(self, deep_catalog, rates):
        engine = CostRollupEngine(deep_catalog, rates, PlanningConfig(max_bom_depth=2))
        cost = engine.calculate_cost("X", 1)

        assert cost.total_cost == 0.0
        assert [w.kind for w in cost.warnings] == [WarningKind.MAX_DEPTH_EXCEEDED]
        assert cost.warnings[0].item_id == "Z"
        assert cost.warnings[0].path == ("X", "Y", "Z")
