# meshprobe/engine/rules.py
import json
from typing import Optional

from meshprobe.engine.state import AttemptState, Phase
from meshprobe.schemas import Report


def decode_report(raw: bytes) -> Optional[Report]:
    # unrelated bus traffic is normal; anything that is not a JSON object is skipped
    try:
        obj = json.loads(raw)
    except ValueError:
        return None
    return obj if isinstance(obj, dict) else None


def is_probe_report(report: Report, from_node: int, text: str) -> bool:
    """Content fingerprint: the report is about our probe packet."""
    payload = report.get("payload")
    return (
        report.get("from") == from_node
        and report.get("to") == 0
        and isinstance(payload, dict)
        and payload.get("text") == text
    )


def reporting_node(topic: str, uplink_prefix: str) -> Optional[str]:
    """Trailing topic segment after the uplink prefix, i.e. the reporter's '!hex' id."""
    if not topic.startswith(uplink_prefix):
        return None
    return topic[len(uplink_prefix):]


def is_tx_report(state: AttemptState, report: Report, node: Optional[str], from_id: str) -> bool:
    return (
        state.phase is Phase.AWAITING_TX
        and node == from_id
        and report.get("id") is not None
    )


def is_rx_report(state: AttemptState, report: Report, node: Optional[str], to_id: str) -> bool:
    return (
        state.phase is Phase.AWAITING_RX
        and report.get("id") == state.packet_id
        and node == to_id
    )
