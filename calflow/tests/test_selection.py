import json

import pytest

from calflow.selection import (
    CalibrationOption,
    OptionUnavailableError,
    Selection,
    SelectionLockedError,
    SelectionModel,
)
from calflow.util import selection_key


@pytest.fixture
def model(store):
    return SelectionModel(device_id="printer1", store=store)


@pytest.fixture
def dual_model(store):
    return SelectionModel(device_id="printer2", dual_extrusion=True, store=store)


class TestSelection:
    def test_defaults(self):
        assert Selection.default() == Selection(
            bed_leveling=True, vibration=True, motor_noise=True, nozzle_offset=False, high_temp_heatbed=False
        )
        assert Selection.default(dual_extrusion=True).nozzle_offset

    def test_has_selection(self):
        assert Selection().has_selection
        none_selected = Selection(bed_leveling=False, vibration=False, motor_noise=False)
        assert not none_selected.has_selection
        assert none_selected.with_option(CalibrationOption.HIGH_TEMP_HEATBED, True).has_selection

    def test_request_payload(self):
        assert Selection().request_payload() == {
            "bed_leveling": True,
            "vibration": True,
            "motor_noise": True,
            "nozzle_offset": False,
            "high_temp_heatbed": False,
        }

    def test_persisted_form(self):
        assert json.loads(Selection().model_dump_json(by_alias=True)) == {
            "bedLeveling": True,
            "vibration": True,
            "motorNoise": True,
            "nozzleOffset": False,
            "highTempHeatbed": False,
        }


class TestSelectionModel:
    def test_defaults(self, model, dual_model):
        assert model.selection == Selection.default()
        assert dual_model.selection == Selection.default(dual_extrusion=True)
        assert CalibrationOption.NOZZLE_OFFSET not in model.available_options()
        assert CalibrationOption.NOZZLE_OFFSET in dual_model.available_options()

    def test_set(self, model):
        model.set(CalibrationOption.VIBRATION, False)
        assert not model.get(CalibrationOption.VIBRATION)
        model.set("high_temp_heatbed", True)
        assert model.get("high_temp_heatbed")

    def test_set_locked(self, model):
        model.locked = True
        with pytest.raises(SelectionLockedError):
            model.set(CalibrationOption.VIBRATION, False)
        assert model.get(CalibrationOption.VIBRATION)

    def test_nozzle_offset_unavailable(self, model, dual_model):
        with pytest.raises(OptionUnavailableError):
            model.set(CalibrationOption.NOZZLE_OFFSET, True)
        dual_model.set(CalibrationOption.NOZZLE_OFFSET, False)
        assert not dual_model.get(CalibrationOption.NOZZLE_OFFSET)

    def test_commit_restore(self, model, store):
        model.set(CalibrationOption.MOTOR_NOISE, False)
        model.commit()
        assert json.loads(store.get(selection_key("printer1")))["motorNoise"] is False

        restored = SelectionModel(device_id="printer1", store=store)
        assert restored.selection == Selection.default()
        assert restored.restore() == model.selection

    def test_restore_without_record(self, model):
        model.set(CalibrationOption.VIBRATION, False)
        assert model.restore() == Selection.default()

    @pytest.mark.parametrize("raw", ("not json", "[1, 2]", '{"bedLeveling": "sometimes"}', "", "null"))
    def test_malformed_record(self, model, store, raw):
        store.set(model.key, raw)
        assert model.load() is None
        assert model.restore() == Selection.default()

    def test_partial_record(self, model, store):
        store.set(model.key, '{"vibration": false}')
        assert model.restore() == Selection.default().with_option(CalibrationOption.VIBRATION, False)

    def test_partial_record_dual_extrusion(self, dual_model, store):
        store.set(dual_model.key, '{"vibration": false}')
        restored = dual_model.restore()
        assert restored == Selection.default(dual_extrusion=True).with_option(CalibrationOption.VIBRATION, False)
        assert restored.nozzle_offset

    def test_snake_case_record(self, dual_model, store):
        store.set(dual_model.key, '{"motor_noise": false}')
        restored = dual_model.restore()
        assert not restored.motor_noise
        assert restored.nozzle_offset

    def test_nozzle_offset_dropped_on_single_extrusion(self, model, store):
        store.set(model.key, Selection(nozzle_offset=True).model_dump_json(by_alias=True))
        assert not model.restore().nozzle_offset

    def test_records_keyed_per_device(self, model, dual_model, store):
        model.set(CalibrationOption.VIBRATION, False)
        model.commit()
        assert dual_model.restore() == Selection.default(dual_extrusion=True)

    def test_reset(self, model, store):
        model.set(CalibrationOption.BED_LEVELING, False)
        model.commit()
        assert model.reset() == Selection.default()
        assert store.get(model.key) is None
        # Resetting without a record is fine.
        model.reset()
