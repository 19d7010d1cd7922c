# tests/test_rules_unit.py
import pytest

from conftest import UPLINK, report
from meshprobe.engine.rules import (
    decode_report,
    is_probe_report,
    is_rx_report,
    is_tx_report,
    reporting_node,
)
from meshprobe.engine.state import AttemptState, Phase


@pytest.mark.parametrize("raw", [b"", b"not json", b"[1, 2]", b"42", b'"text"', b"\xff\xfe\xfa", b"null"])
def test_decode_skips_non_objects(raw):
    assert decode_report(raw) is None


def test_decode_object():
    assert decode_report(b'{"from": 1, "to": 0}') == {"from": 1, "to": 0}


def test_fingerprint_match():
    assert is_probe_report(report("0000000a"), 1, "0000000a")


@pytest.mark.parametrize("rep", [
    report("0000000a", frm=2),
    report("0000000a", to=4294967295),
    report("0000000b"),
    report("0000000a."),
    {"from": 1, "to": 0, "id": "m1", "payload": None},
    {"from": 1, "to": 0, "id": "m1", "payload": "0000000a"},
    {"from": 1, "to": 0, "id": "m1", "payload": {"hex": "0000000a"}},
    {"from": 1, "id": "m1", "payload": {"text": "0000000a"}},
    {},
])
def test_fingerprint_mismatch(rep):
    assert not is_probe_report(rep, 1, "0000000a")


def test_reporting_node():
    assert reporting_node(UPLINK + "!00000002", UPLINK) == "!00000002"
    assert reporting_node("other/2/json/LongFast/!00000002", UPLINK) is None


def test_tx_then_rx_phases():
    state = AttemptState(tag=10, text="0000000a")
    rep = report("0000000a", id="m1")

    assert not is_tx_report(state, rep, "!00000002", "!00000001")
    assert not is_tx_report(state, {**rep, "id": None}, "!00000001", "!00000001")
    assert not is_rx_report(state, rep, "!00000002", "!00000002")
    assert is_tx_report(state, rep, "!00000001", "!00000001")

    state.mark_transmitted("m1", 5.0)
    assert state.phase is Phase.AWAITING_RX
    assert (state.packet_id, state.tx_time) == ("m1", 5.0)

    # once captured, further source reports are not transmit reports
    assert not is_tx_report(state, rep, "!00000001", "!00000001")
    assert not is_rx_report(state, {**rep, "id": "m2"}, "!00000002", "!00000002")
    assert not is_rx_report(state, rep, "!00000003", "!00000002")
    assert is_rx_report(state, rep, "!00000002", "!00000002")
