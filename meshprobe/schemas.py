# meshprobe/schemas.py
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional, TypedDict, Union


class ReportPayload(TypedDict, total=False):
    text: str


# "from" is a keyword, so both wire schemas use the functional form.
# Gateway JSON report as seen on the uplink topics.
Report = TypedDict("Report", {
    "from": int,
    "to": int,
    "id": Any,                      # on-air packet id, opaque
    "payload": Optional[ReportPayload],
    "rssi": float,
    "snr": float,
}, total=False)

ProbePacket = TypedDict("ProbePacket", {
    "from": int,
    "to": int,
    "hopLimit": int,
    "payload": str,
    "type": Literal["sendtext"],
})


class ProbeStatus(Enum):
    SUCCESS = 0
    TIMEOUT = 1
    NOT_TRANSMITTED = 2


@dataclass(frozen=True)
class ProbeResult:
    delay_ms: int
    packet_id: Any
    rssi: Union[int, float, None]
    snr: Union[int, float, None]


@dataclass(frozen=True)
class ProbeOutcome:
    status: ProbeStatus
    result: Optional[ProbeResult] = None

    @classmethod
    def success(cls, result: ProbeResult) -> "ProbeOutcome":
        return cls(ProbeStatus.SUCCESS, result)

    @classmethod
    def timeout(cls) -> "ProbeOutcome":
        return cls(ProbeStatus.TIMEOUT)

    @classmethod
    def not_transmitted(cls) -> "ProbeOutcome":
        return cls(ProbeStatus.NOT_TRANSMITTED)
