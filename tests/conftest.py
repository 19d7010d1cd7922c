# tests/conftest.py
import pytest

from meshprobe.config import ProbeConfig

UPLINK = "msh/EU_868/2/json/LongFast/"
SOURCE_TOPIC = UPLINK + "!00000001"
TARGET_TOPIC = UPLINK + "!00000002"


def make_config(**overrides) -> ProbeConfig:
    fields = dict(
        url="mqtt://localhost",
        topic="msh/EU_868",
        uplink_channel="LongFast",
        from_node=0x1,
        to_node=0x2,
        extra_load=0,
        timeout_ms=300,
        interval_ms=10,
    )
    fields.update(overrides)
    return ProbeConfig(**fields)


def report(text, id="m1", frm=0x1, to=0, rssi=-80, snr=7.5):
    return {"from": frm, "to": to, "id": id, "payload": {"text": text}, "rssi": rssi, "snr": snr}


@pytest.fixture
def fixed_tag(monkeypatch):
    """Pin the probe tag to 10 so the payload text is '0000000a'."""
    monkeypatch.setattr("meshprobe.engine.controller.random32", lambda: 10)
    return "0000000a"
