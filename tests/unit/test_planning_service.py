"""
Unit tests for PlanningService.

Run: pytest tests/unit/test_planning_service.py -v
"""

import pytest

from services.planning_service import PlanningService
from models.planning import MaterialSelection, PlanningFormData
from models.recipe import MaterialType
from exceptions import (
    NotFoundError,
    PlanningValidationError,
    IndividualProductSelectionError,
)

from tests.factories import ProductFactory, RawMaterialFactory, IndividualProductFactory


@pytest.fixture
def rug():
    """2m x 1.5m rug = 3 SQM per unit."""
    return ProductFactory.create(id="rug-1", name="Royal Rug")


@pytest.fixture
def yarn():
    return RawMaterialFactory.create(id="yarn-1", name="Cotton Yarn", current_stock=10)


@pytest.fixture
def seeded(mock_db, mock_supabase, rug, yarn):
    """Rug with a recipe of 0.5 kg yarn per SQM."""
    mock_supabase.set_table_data("products", [rug])
    mock_supabase.set_table_data("raw_materials", [yarn])
    mock_supabase.set_table_data("recipes", [{"id": "recipe-1", "product_id": rug["id"]}])
    mock_supabase.set_table_data("recipe_materials", [{
        "id": "line-1",
        "recipe_id": "recipe-1",
        "material_id": yarn["id"],
        "material_name": "Cotton Yarn",
        "material_type": "raw_material",
        "quantity_per_sqm": 0.5,
        "unit": "kg",
        "sort_order": 0,
    }])
    return mock_supabase


class TestPlanningServiceCalculateRequirements:
    """Tests for PlanningService.load_planning() requirement scaling"""

    def test_scales_recipe_to_planned_area(self, seeded, rug):
        """10 rugs x 3 SQM x 0.5 kg = 15 kg of yarn."""
        # Arrange
        service = PlanningService()

        # Act
        state = service.load_planning(rug["id"], planned_quantity=10)

        # Assert
        assert len(state.requirements) == 1
        line = state.requirements[0]
        assert line.required_quantity == pytest.approx(15)
        assert line.available_quantity == 10
        assert line.unit == "kg"

    def test_partial_stock_is_low_with_shortage(self, seeded, rug):
        """Should classify 10 kg on hand against 15 kg needed as low."""
        service = PlanningService()

        state = service.load_planning(rug["id"], planned_quantity=10)

        line = state.requirements[0]
        assert line.status.value == "low"
        assert line.shortage == pytest.approx(5)

    def test_no_stock_is_unavailable(self, seeded, rug):
        seeded.rows("raw_materials")[0]["current_stock"] = 0
        service = PlanningService()

        state = service.load_planning(rug["id"], planned_quantity=10)

        assert state.requirements[0].status.value == "unavailable"
        assert state.requirements[0].shortage == pytest.approx(15)

    def test_product_without_recipe_has_no_requirements(self, seeded, rug):
        seeded.set_table_data("recipes", [])
        service = PlanningService()

        state = service.load_planning(rug["id"], planned_quantity=10)

        assert state.requirements == []

    def test_failed_lookup_counts_as_unavailable(self, seeded, rug):
        """Should keep planning usable when a stock lookup fails."""
        seeded.fail_on("raw_materials", "select")
        service = PlanningService()

        state = service.load_planning(rug["id"], planned_quantity=10)

        assert state.requirements[0].available_quantity == 0
        assert state.requirements[0].status.value == "unavailable"

    def test_fresh_state_is_not_saved(self, seeded, rug):
        """Loading without a draft must not write anything."""
        service = PlanningService()

        service.load_planning(rug["id"], planned_quantity=10)

        assert seeded.writes() == []


class TestPlanningServiceUpdateForm:
    """Tests for PlanningService.update_form()"""

    def test_rescales_and_saves_draft(self, seeded, rug):
        # Arrange
        service = PlanningService()

        # Act
        state = service.update_form(rug["id"], PlanningFormData(planned_quantity=4))

        # Assert
        assert state.requirements[0].required_quantity == pytest.approx(6)
        assert state.requirements[0].status.value == "available"
        drafts = seeded.rows("production_planning_drafts")
        assert len(drafts) == 1
        assert drafts[0]["form_data"]["planned_quantity"] == 4

    def test_second_save_updates_same_draft(self, seeded, rug):
        service = PlanningService()

        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))
        service.update_form(rug["id"], PlanningFormData(planned_quantity=8))

        drafts = seeded.rows("production_planning_drafts")
        assert len(drafts) == 1
        assert drafts[0]["form_data"]["planned_quantity"] == 8

    def test_load_returns_saved_draft(self, seeded, rug):
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))

        state = service.load_planning(rug["id"])

        assert state.form_data.planned_quantity == 4
        assert state.requirements[0].required_quantity == pytest.approx(6)


class TestPlanningServiceAddMaterials:
    """Tests for PlanningService.add_materials()"""

    def test_ignores_material_already_planned(self, seeded, rug, yarn):
        """Should not add a material twice."""
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=10))

        state = service.add_materials(rug["id"], [
            MaterialSelection(material_id=yarn["id"], material_name="Cotton Yarn", quantity_per_sqm=1),
        ])

        assert len(state.requirements) == 1
        assert state.requirements[0].quantity_per_sqm == 0.5
        assert state.recipe_modified is False

    def test_product_material_whole_count(self, seeded, rug):
        """0.1 rolls/SQM x 30 SQM needs exactly 3 whole rolls."""
        # Arrange
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length=1.5, width=1)
        seeded.rows("products").append(backing)
        seeded.set_table_data(
            "individual_products",
            IndividualProductFactory.create_batch(2, product_id=backing["id"])
        )
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=10))

        # Act
        state = service.add_materials(rug["id"], [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
                quantity_per_sqm=0.1,
            ),
        ])

        # Assert
        line = state.requirements[-1]
        assert line.whole_product_count == 3
        assert line.unit == "rolls"
        assert line.available_quantity == 2
        assert line.status.value == "low"
        assert state.recipe_modified is True

    def test_product_quantity_derived_from_area_ratio(self, seeded, rug):
        """A 1.5 SQM child product gives 1 / 1.5 units per SQM."""
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length=1.5, width=1)
        seeded.rows("products").append(backing)
        service = PlanningService()

        state = service.add_materials(rug["id"], [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
            ),
        ])

        assert state.requirements[-1].quantity_per_sqm == pytest.approx(0.6667)

    def test_product_quantity_blank_without_units(self, seeded, rug):
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length_unit=None)
        seeded.rows("products").append(backing)
        service = PlanningService()

        state = service.add_materials(rug["id"], [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
            ),
        ])

        assert state.requirements[-1].quantity_per_sqm is None


class TestPlanningServiceRemoveMaterial:
    """Tests for PlanningService.remove_material()"""

    def test_removes_line(self, seeded, rug, yarn):
        service = PlanningService()

        state = service.remove_material(rug["id"], yarn["id"])

        assert state.requirements == []
        assert state.recipe_modified is True

    def test_unknown_material_raises(self, seeded, rug):
        service = PlanningService()

        with pytest.raises(NotFoundError) as exc_info:
            service.remove_material(rug["id"], "missing")

        assert exc_info.value.code == "REQUIREMENT_NOT_FOUND"


class TestPlanningServiceAddToProduction:
    """Tests for PlanningService.add_to_production()"""

    def test_moves_requirements_to_consumed(self, seeded, rug, yarn):
        # Arrange
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))

        # Act
        result = service.add_to_production(rug["id"], actor="Asha")

        # Assert
        assert result.moved_material_ids == [yarn["id"]]
        assert result.warnings == []
        assert result.state.requirements == []
        assert [c.material_id for c in result.state.consumed] == [yarn["id"]]

    def test_low_material_warns_and_notifies(self, seeded, rug):
        """Shortages never block adding to production."""
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=10))

        result = service.add_to_production(rug["id"])

        assert len(result.warnings) == 1
        assert "short 5 kg" in result.warnings[0]
        notifications = seeded.rows("notifications")
        assert len(notifications) == 1
        assert notifications[0]["type"] == "low_stock"
        assert notifications[0]["module"] == "materials"
        assert notifications[0]["priority"] == "medium"

    def test_notification_failure_does_not_block(self, seeded, rug):
        seeded.fail_on("notifications", "insert")
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=10))

        result = service.add_to_production(rug["id"])

        assert len(result.state.consumed) == 1
        assert len(result.warnings) == 1

    def test_zero_quantity_rejected_before_writes(self, seeded, rug):
        service = PlanningService()

        with pytest.raises(PlanningValidationError):
            service.add_to_production(rug["id"])

        assert seeded.writes() == []

    def test_missing_quantity_rejected(self, seeded, rug):
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length_unit=None)
        seeded.rows("products").append(backing)
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))
        service.add_materials(rug["id"], [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
            ),
        ])

        with pytest.raises(PlanningValidationError) as exc_info:
            service.add_to_production(rug["id"])

        assert exc_info.value.details["materials"] == ["Backing Roll"]

    def test_consumed_material_never_added_twice(self, seeded, rug, yarn):
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))
        service.add_to_production(rug["id"])

        state = service.add_materials(rug["id"], [
            MaterialSelection(material_id=yarn["id"], material_name="Cotton Yarn", quantity_per_sqm=0.5),
        ])

        assert state.requirements == []
        assert len(state.consumed) == 1

    def test_modified_recipe_is_persisted(self, seeded, rug):
        dye = RawMaterialFactory.create(id="dye-1", name="Red Dye", unit="liters")
        seeded.rows("raw_materials").append(dye)
        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=4))
        service.add_materials(rug["id"], [
            MaterialSelection(material_id=dye["id"], material_name="Red Dye", quantity_per_sqm=0.2),
        ])

        service.add_to_production(rug["id"], actor="Asha")

        lines = seeded.rows("recipe_materials")
        assert {line["material_id"] for line in lines} == {"yarn-1", "dye-1"}


class TestPlanningServiceSelectIndividualProducts:
    """Tests for PlanningService.select_individual_products()"""

    @pytest.fixture
    def with_backing(self, seeded, rug):
        backing = ProductFactory.create(id="backing-1", name="Backing Roll", length=1.5, width=1)
        seeded.rows("products").append(backing)
        units = IndividualProductFactory.create_batch(3, product_id=backing["id"])
        units[2]["status"] = "sold"
        seeded.set_table_data("individual_products", units)

        service = PlanningService()
        service.update_form(rug["id"], PlanningFormData(planned_quantity=1))
        service.add_materials(rug["id"], [
            MaterialSelection(
                material_id=backing["id"],
                material_name="Backing Roll",
                material_type=MaterialType.PRODUCT,
                quantity_per_sqm=0.5,
            ),
        ])
        return service, units

    def test_selects_available_units(self, with_backing, rug):
        service, units = with_backing

        state = service.select_individual_products(rug["id"], "backing-1", [units[0]["id"], units[1]["id"]])

        assert state.requirements[-1].individual_product_ids == [units[0]["id"], units[1]["id"]]

    def test_rejects_unavailable_unit(self, with_backing, rug):
        service, units = with_backing

        with pytest.raises(IndividualProductSelectionError) as exc_info:
            service.select_individual_products(rug["id"], "backing-1", [units[2]["id"]])

        assert exc_info.value.details["items"][0]["reason"] == "status is sold"

    def test_rejects_unit_reserved_for_order(self, with_backing, rug, mock_supabase):
        service, units = with_backing
        mock_supabase.rows("individual_products")[0]["status"] = "reserved"

        with pytest.raises(IndividualProductSelectionError) as exc_info:
            service.select_individual_products(rug["id"], "backing-1", [units[0]["id"]])

        assert exc_info.value.details["items"][0]["reason"] == "status is reserved"

    def test_rejects_raw_material_line(self, with_backing, rug, yarn):
        service, _ = with_backing

        with pytest.raises(PlanningValidationError):
            service.select_individual_products(rug["id"], yarn["id"], ["x"])

    def test_consumed_line_reserves_units(self, with_backing, rug, mock_supabase):
        """Changing a committed line reserves new units and releases dropped ones."""
        service, units = with_backing
        service.select_individual_products(rug["id"], "backing-1", [units[0]["id"]])
        service.add_to_production(rug["id"])

        service.select_individual_products(rug["id"], "backing-1", [units[1]["id"]])

        statuses = {u["id"]: u["status"] for u in mock_supabase.rows("individual_products")}
        assert statuses[units[0]["id"]] == "available"
        assert statuses[units[1]["id"]] == "in-production"
