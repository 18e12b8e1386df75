import pytest

from calflow.stages import CALIBRATION_STAGES, NO_STAGE, DeviceState, StatusSnapshot, is_calibrating

NON_CALIBRATION_STAGES = [c for c in range(-1, 100) if c not in CALIBRATION_STAGES]


@pytest.mark.parametrize("state", list(DeviceState) + ["running", None, "SLICING"])
@pytest.mark.parametrize("stage_code", NON_CALIBRATION_STAGES)
def test_unknown_stage_is_never_calibrating(stage_code, state):
    assert not is_calibrating(stage_code, state)


@pytest.mark.parametrize("state", [s for s in DeviceState if s is not DeviceState.RUNNING] + [None, "PREPARE"])
@pytest.mark.parametrize("stage_code", sorted(CALIBRATION_STAGES))
def test_not_running_is_never_calibrating(stage_code, state):
    assert not is_calibrating(stage_code, state)


@pytest.mark.parametrize("stage_code", sorted(CALIBRATION_STAGES))
def test_running_calibration_stage(stage_code):
    assert is_calibrating(stage_code, DeviceState.RUNNING)
    assert is_calibrating(stage_code, "RUNNING")


class TestStatusSnapshot:
    def test_defaults(self):
        obj = StatusSnapshot()
        assert not obj.connected
        assert obj.state is DeviceState.OTHER
        assert obj.stage_code == NO_STAGE
        assert obj.stage_name is None
        assert not obj.is_calibrating

    @pytest.mark.parametrize(
        "data",
        (
            {"connected": True, "state": "RUNNING", "stage_code": 13, "stage_name": "Homing toolhead"},
            {"connected": True, "state": "RUNNING", "currentStageCode": 13, "currentStageName": "Homing toolhead"},
            {"connected": True, "state": "RUNNING", "stg_cur": 13, "stg_cur_name": "Homing toolhead"},
        ),
    )
    def test_wire_names(self, data):
        obj = StatusSnapshot.model_validate(data)
        assert obj.stage_code == 13
        assert obj.stage_name == "Homing toolhead"
        assert obj.is_calibrating

    @pytest.mark.parametrize("state", ("SLICING", None, 3))
    def test_unknown_state(self, state):
        assert StatusSnapshot(state=state).state is DeviceState.OTHER

    def test_null_stage_code(self):
        assert StatusSnapshot.model_validate({"stg_cur": None}).stage_code == NO_STAGE
