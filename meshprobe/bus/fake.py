# meshprobe/bus/fake.py
import asyncio
import itertools
import json
from typing import Callable, Iterable, Optional

from meshprobe.bus.base import Bus

# responder(topic, packet) -> [(delay_s, topic, report), ...]
Responder = Callable[[str, dict], Iterable[tuple]]


class FakeBus(Bus):
    """
    In-memory gateway stand-in.
    Every publish is recorded; if a responder is set it is asked which reports
    the mesh would emit for the packet, and each one is delivered after its delay.
    Reports may be dicts (JSON-encoded) or raw bytes/str.
    """

    def __init__(self, responder: Optional[Responder] = None):
        super().__init__()
        self.responder = responder
        self.subscriptions: list[str] = []
        self.published: list[tuple[str, dict]] = []

    async def subscribe(self, pattern: str) -> None:
        self.subscriptions.append(pattern)

    async def publish(self, topic: str, payload: str) -> None:
        packet = json.loads(payload)
        self.published.append((topic, packet))
        if self.responder is None:
            return
        loop = asyncio.get_running_loop()
        for delay_s, report_topic, report in self.responder(topic, packet) or ():
            loop.call_later(delay_s, self.inject, report_topic, report)

    def inject(self, topic: str, report) -> None:
        if isinstance(report, dict):
            raw = json.dumps(report).encode()
        elif isinstance(report, str):
            raw = report.encode()
        else:
            raw = report
        self.dispatch(topic, raw)


def mesh_responder(uplink_prefix: str, to_node_id: str, rssi=-80, snr=7.5,
                   tx_delay_s: float = 0.05, rx_delay_s: float = 0.25,
                   first_packet_id: int = 0x1234ABCD) -> Responder:
    """
    Responder that behaves like a healthy link: the source reports its
    transmission, then the target reports reception of the same packet.
    """
    packet_ids = itertools.count(first_packet_id)

    def respond(topic: str, packet: dict):
        from_node_id = topic.rsplit("/", 1)[-1]
        report = {
            "from": packet["from"],
            "to": packet["to"],
            "id": next(packet_ids),
            "payload": {"text": packet["payload"]},
            "rssi": rssi,
            "snr": snr,
        }
        return [
            (tx_delay_s, uplink_prefix + from_node_id, report),
            (rx_delay_s, uplink_prefix + to_node_id, report),
        ]

    return respond
