# meshprobe/engine/state.py
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Phase(Enum):
    AWAITING_TX = "awaiting_tx_report"
    AWAITING_RX = "awaiting_rx_report"


@dataclass
class AttemptState:
    """Everything one probe() call knows; never outlives the call."""
    tag: int
    text: str                       # probe payload text, the content fingerprint
    phase: Phase = Phase.AWAITING_TX
    packet_id: Any = None           # on-air id from the source's transmit report
    tx_time: Optional[float] = None

    def mark_transmitted(self, packet_id, now: float) -> None:
        self.packet_id = packet_id
        self.tx_time = now
        self.phase = Phase.AWAITING_RX
