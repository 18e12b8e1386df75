import logging

import pytest

from calflow.history import InMemoryHistory
from calflow.logutils import EVENT, LogHistoryCaptureHandler, LogInfo


@pytest.fixture
def history():
    return InMemoryHistory()


@pytest.fixture
def logger(history):
    logger = logging.getLogger("calflow.test_component")
    handler = LogHistoryCaptureHandler(history)
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    yield logger
    logger.removeHandler(handler)


def test_log_info():
    info = LogInfo(device="x1", stage_code=13)
    assert info.dump() == {LogInfo.EXTRA_KEY: {"device": "x1", "stage_code": 13}}


def test_log_info_not_serializable():
    with pytest.raises(ValueError):
        LogInfo(device=object())


def test_event_level_name():
    assert logging.getLevelName(EVENT) == "EVENT"


def test_capture(logger, history):
    logger.log(EVENT, "Calibration completed", extra=LogInfo(device="x1", stage_code=48))
    logger.info("plain log")
    logger.debug("not captured")

    records = history.get().data["test_component"]
    assert [r.kind for r in records] == ["event", "log"]
    assert records[0].device == "x1"
    assert records[0].data == {"level": "EVENT", "message": "Calibration completed", "device": "x1", "stage_code": 48}
    assert records[1].device is None
    assert records[1].data == {"level": "INFO", "message": "plain log"}


class TestHistory:
    def test_filters(self, history):
        history.put("a", "event", {"message": "1"}, device="x1")
        history.put("a", "log", {"message": "2"}, device="x1")
        history.put("b", "event", {"message": "3"}, device="x2")

        assert set(history.get().data) == {"a", "b"}
        assert set(history.get(names=["b"]).data) == {"b"}
        assert [r.data["message"] for r in history.get(kinds=["event"]).data["a"]] == ["1"]
        assert history.get(devices=["x2"]).data["a"] == []
        assert [r.data["message"] for r in history.get(n_max=1).data["a"]] == ["2"]
        assert history.get(n_max=0).data["a"] == []

    def test_t_start(self, history):
        history.put("a", "event", {})
        t_start = history.history["a"][-1].timestamp
        assert len(history.get(t_start=t_start).data["a"]) == 1
        assert history.get(t_start=t_start + 1).data["a"] == []

    def test_buffer_size(self):
        history = InMemoryHistory(buffer_size=3)
        for i in range(5):
            history.put("a", "event", i)
        assert [r.data for r in history.get().data["a"]] == [2, 3, 4]
