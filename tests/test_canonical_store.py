"""
Tests for the canonical store: open/create, entity get/update, save and
the supplemented metadata operations.

Run with: pytest tests/test_canonical_store.py -v
"""

import pytest

from api.schemas import CharacteristicDetail, EntityKind, MeasurementDetail
from api.shared.errors import (
    EntityNotFoundError,
    EntityValidationError,
    NoDatasetLoadedError,
    ParseError,
    StorageIoError,
)


class TestOpen:

    def test_open_from_content_metadata(self, store, sample_a2l):
        metadata = store.open_from_content(sample_a2l)

        assert metadata.project_name == "demo_project"
        assert metadata.project_long_identifier == "Demo project"
        assert metadata.module_names == ["engine"]
        assert metadata.header_comment == "Header comment"
        assert metadata.asap2_version == "1.71"
        assert metadata.warning_count == 0
        assert store.is_loaded

    def test_parse_error_keeps_prior_dataset(self, loaded_store):
        with pytest.raises(ParseError):
            loaded_store.open_from_content("/begin PROJECT broken")
        assert loaded_store.metadata().project_name == "demo_project"

    def test_parse_error_with_nothing_loaded(self, store):
        with pytest.raises(ParseError):
            store.open_from_content("not a dataset")
        assert not store.is_loaded

    def test_open_from_location(self, store, sample_a2l, tmp_path):
        path = tmp_path / "demo.a2l"
        path.write_text(sample_a2l, encoding="utf-8")

        assert store.open_from_location(str(path)).project_name == "demo_project"

    def test_open_missing_location(self, loaded_store, tmp_path):
        with pytest.raises(StorageIoError):
            loaded_store.open_from_location(str(tmp_path / "missing.a2l"))
        assert loaded_store.metadata().project_name == "demo_project"

    def test_create_empty(self, store):
        metadata = store.create_empty()

        assert metadata.project_name == "new_project"
        assert metadata.module_names == ["new_module"]
        assert metadata.asap2_version == "1.71"
        assert metadata.header_comment is None

    def test_warning_count(self, store):
        metadata = store.open_from_content('/begin PROJECT p ""\n/begin MODULE m ""\n/end MODULE\n/end PROJECT')
        assert metadata.warning_count == 1

    def test_nothing_loaded(self, store):
        with pytest.raises(NoDatasetLoadedError):
            store.metadata()
        with pytest.raises(NoDatasetLoadedError):
            store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")
        with pytest.raises(NoDatasetLoadedError):
            store.export_content()


class TestGetEntity:

    def test_measurement_detail(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")

        assert isinstance(detail, MeasurementDetail)
        assert detail.kind == "Measurement"
        assert detail.ecu_address == "0x2000"
        assert detail.upper_limit == 8000

    def test_characteristic_detail(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.CHARACTERISTIC, "IdleTarget")

        assert isinstance(detail, CharacteristicDetail)
        assert detail.address == "0x3000"
        assert detail.bit_mask == "0xFF"

    def test_unknown_name(self, loaded_store):
        with pytest.raises(EntityNotFoundError):
            loaded_store.get_entity(EntityKind.MEASUREMENT, "Nope")

    def test_name_under_other_kind(self, loaded_store):
        with pytest.raises(EntityNotFoundError):
            loaded_store.get_entity(EntityKind.CHARACTERISTIC, "EngineSpeed")

    def test_unknown_container(self, loaded_store):
        with pytest.raises(EntityNotFoundError, match="Module 'other'"):
            loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed", "other")

    def test_read_only_kind(self, loaded_store):
        with pytest.raises(EntityValidationError, match="read-only"):
            loaded_store.get_entity(EntityKind.COMPU_METHOD, "CM_RPM")


class TestUpdateEntity:

    def test_round_trip(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")
        submitted = detail.model_copy(
            update={"upper_limit": 12000.0, "long_identifier": "Crank speed", "ecu_address": "0x2ABC"}
        )

        loaded_store.update_entity(EntityKind.MEASUREMENT, "EngineSpeed", submitted)

        assert loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed") == submitted

    def test_kind_mismatch_is_rejected(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")
        with pytest.raises(EntityValidationError, match="does not match"):
            loaded_store.update_entity(EntityKind.CHARACTERISTIC, "EngineSpeed", detail)

    def test_unknown_name(self, loaded_store):
        with pytest.raises(EntityNotFoundError):
            loaded_store.update_entity(EntityKind.MEASUREMENT, "Nope", MeasurementDetail(name="Nope"))

    def test_invalid_values_leave_entity_untouched(self, loaded_store):
        before = loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")
        bad = before.model_copy(update={"lower_limit": 9000.0, "datatype": "QWORD"})

        with pytest.raises(EntityValidationError) as exc_info:
            loaded_store.update_entity(EntityKind.MEASUREMENT, "EngineSpeed", bad)

        assert len(exc_info.value.problems) == 2
        assert loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed") == before

    def test_invalid_hex_address(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.CHARACTERISTIC, "IdleTarget")
        with pytest.raises(EntityValidationError, match="hex"):
            loaded_store.update_entity(
                EntityKind.CHARACTERISTIC, "IdleTarget", detail.model_copy(update={"address": "0xZZ"})
            )

    def test_rename(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "CoolantTemp")
        loaded_store.update_entity(
            EntityKind.MEASUREMENT, "CoolantTemp", detail.model_copy(update={"name": "CoolantTemperature"})
        )

        assert loaded_store.get_entity(EntityKind.MEASUREMENT, "CoolantTemperature").accuracy == 0.5
        with pytest.raises(EntityNotFoundError):
            loaded_store.get_entity(EntityKind.MEASUREMENT, "CoolantTemp")

    def test_rename_collision(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "CoolantTemp")
        with pytest.raises(EntityValidationError, match="already exists"):
            loaded_store.update_entity(
                EntityKind.MEASUREMENT, "CoolantTemp", detail.model_copy(update={"name": "EngineSpeed"})
            )
        assert loaded_store.get_entity(EntityKind.MEASUREMENT, "CoolantTemp").name == "CoolantTemp"

    def test_empty_name(self, loaded_store):
        detail = loaded_store.get_entity(EntityKind.AXIS_PTS, "SpeedAxis")
        with pytest.raises(EntityValidationError, match="name"):
            loaded_store.update_entity(EntityKind.AXIS_PTS, "SpeedAxis", detail.model_copy(update={"name": ""}))


class TestSave:

    def test_save_and_reopen(self, loaded_store, tmp_path):
        detail = loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed")
        edited = detail.model_copy(update={"upper_limit": 12000.0})
        loaded_store.update_entity(EntityKind.MEASUREMENT, "EngineSpeed", edited)
        path = tmp_path / "saved.a2l"

        loaded_store.save_to_location(str(path))

        loaded_store.close()
        loaded_store.open_from_location(str(path))
        assert loaded_store.get_entity(EntityKind.MEASUREMENT, "EngineSpeed") == edited

    def test_save_to_unreachable_location(self, loaded_store, tmp_path):
        with pytest.raises(StorageIoError):
            loaded_store.save_to_location(str(tmp_path / "no_such_dir" / "out.a2l"))

    def test_save_rejects_invalid_dataset(self, store, edit_a2l, tmp_path):
        store.open_from_content(edit_a2l.replace("0 0 8000", "0 9000 8000"))
        path = tmp_path / "out.a2l"

        with pytest.raises(EntityValidationError, match="lower limit exceeds upper limit"):
            store.save_to_location(str(path))
        assert not path.exists()

    def test_export_content(self, loaded_store):
        text = loaded_store.export_content()
        assert text.startswith("ASAP2_VERSION 1 71\n/begin PROJECT demo_project")


class TestMetadataOperations:

    def test_update_project_metadata(self, loaded_store):
        metadata = loaded_store.update_project_metadata("renamed", "Renamed project", "New comment")

        assert metadata.project_name == "renamed"
        assert metadata.project_long_identifier == "Renamed project"
        assert metadata.header_comment == "New comment"

    def test_empty_comment_removes_header(self, loaded_store):
        metadata = loaded_store.update_project_metadata("demo_project", "", "  ")

        assert metadata.header_comment is None
        assert "/begin HEADER" not in loaded_store.export_content()

    def test_invalid_project_name(self, loaded_store):
        with pytest.raises(EntityValidationError):
            loaded_store.update_project_metadata("not valid", "", None)
        assert loaded_store.metadata().project_name == "demo_project"

    def test_update_container_description(self, loaded_store):
        loaded_store.update_container_description("engine", "Powertrain")
        assert loaded_store.find_module("engine").long_identifier == "Powertrain"

    def test_update_unknown_container(self, loaded_store):
        with pytest.raises(EntityNotFoundError):
            loaded_store.update_container_description("gearbox", "x")

    def test_list_entities(self, loaded_store):
        entities = loaded_store.list_entities()

        assert entities[0].kind == "Module"
        assert entities[0].name == "engine"
        assert [e.name for e in entities[1:]] == [
            "EngineSpeed",
            "CoolantTemp",
            "IdleTarget",
            "FuelMap",
            "SpeedAxis",
        ]
