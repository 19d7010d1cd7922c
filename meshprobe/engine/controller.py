# meshprobe/engine/controller.py

import asyncio
import json
import logging
import time
from typing import Callable, Optional

from meshprobe.bus.base import Bus
from meshprobe.config import ProbeConfig
from meshprobe.engine.rules import (
    decode_report,
    is_probe_report,
    is_rx_report,
    is_tx_report,
    reporting_node,
)
from meshprobe.engine.state import AttemptState, Phase
from meshprobe.ids import format_hex, format_node_id, random32
from meshprobe.report import render_line, utc_timestamp
from meshprobe.schemas import ProbeOutcome, ProbePacket, ProbeResult

logger = logging.getLogger(__name__)


class ProbeLoopError(RuntimeError):
    """The measurement loop hit an unexpected fault and stopped."""


def uplink_prefix(config: ProbeConfig) -> str:
    return f"{config.topic}/2/json/{config.uplink_channel}/"


class ProbeEngine:
    """
    Measures source -> target delivery over the mesh, one attempt at a time.

    The engine owns the single uplink subscription for the life of the bus.
    Each probe() builds its own AttemptState and its own listener, so nothing
    about an attempt is kept on the engine.
    """

    def __init__(self, bus: Bus, config: ProbeConfig, clock: Callable[[], float] = time.monotonic):
        self.bus = bus
        self.config = config
        self.clock = clock
        self.uplink_prefix = uplink_prefix(config)
        self.from_id = format_node_id(config.from_node)
        self.to_id = format_node_id(config.to_node)
        self.downlink_topic = f"{config.topic}/2/json/mqtt/{self.from_id}"

    @classmethod
    async def create(cls, bus: Bus, config: ProbeConfig,
                     clock: Callable[[], float] = time.monotonic) -> "ProbeEngine":
        engine = cls(bus, config, clock)
        await bus.subscribe(engine.uplink_prefix + "+")
        return engine

    def _probe_packet(self, text: str) -> ProbePacket:
        # to=0 keeps the target from forwarding it to its phone,
        # hopLimit=0 keeps every node except the source from relaying it
        return {
            "from": self.config.from_node,
            "to": 0,
            "hopLimit": 0,
            "payload": text,
            "type": "sendtext",
        }

    def _handle(self, state: AttemptState, topic: str, raw: bytes) -> Optional[ProbeOutcome]:
        report = decode_report(raw)
        if report is None or not is_probe_report(report, self.config.from_node, state.text):
            return None

        node = reporting_node(topic, self.uplink_prefix)
        if is_tx_report(state, report, node, self.from_id):
            state.mark_transmitted(report["id"], self.clock())
            logger.debug("tx report for %s, packet id %r", state.text[:8], state.packet_id)
            return None
        if is_rx_report(state, report, node, self.to_id):
            delay_ms = round((self.clock() - state.tx_time) * 1000)
            return ProbeOutcome.success(ProbeResult(
                delay_ms=delay_ms,
                packet_id=state.packet_id,
                rssi=report.get("rssi"),
                snr=report.get("snr"),
            ))

        logger.debug("ignoring report on %s in phase %s", topic, state.phase.value)
        return None

    async def probe(self) -> ProbeOutcome:
        """Run one attempt; resolves no later than the configured timeout."""
        tag = random32()
        state = AttemptState(tag=tag, text=format_hex(tag) + "." * self.config.extra_load)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout_s
        inbox: asyncio.Queue = asyncio.Queue()

        def listener(topic: str, raw: bytes) -> None:
            inbox.put_nowait((topic, raw))

        self.bus.add_listener(listener)
        try:
            try:
                await asyncio.wait_for(
                    self.bus.publish(self.downlink_topic, json.dumps(self._probe_packet(state.text))),
                    timeout=max(deadline - loop.time(), 0),
                )
            except asyncio.TimeoutError:
                # resolves as not transmitted below, the deadline has passed
                logger.warning("publish to %s did not finish within %d ms", self.downlink_topic, self.config.timeout_ms)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    topic, raw = await asyncio.wait_for(inbox.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                outcome = self._handle(state, topic, raw)
                if outcome is not None:
                    return outcome
        finally:
            self.bus.remove_listener(listener)

        if state.phase is Phase.AWAITING_TX:
            return ProbeOutcome.not_transmitted()
        return ProbeOutcome.timeout()

    async def _probe_and_report(self, started_at: str, emit: Callable[[str], None]) -> ProbeOutcome:
        outcome = await self.probe()
        emit(render_line(started_at, outcome))
        return outcome

    async def loop(self, attempts: Optional[int] = None, emit: Callable[[str], None] = print) -> None:
        """
        Probe back to back, never faster than one attempt per interval.
        The attempt and the interval sleep run together, so the period is
        max(attempt, interval). Runs forever unless attempts is given.
        """
        done = 0
        while attempts is None or done < attempts:
            done += 1
            started_at = utc_timestamp()
            tasks = [
                asyncio.ensure_future(self._probe_and_report(started_at, emit)),
                asyncio.ensure_future(asyncio.sleep(self.config.interval_s)),
            ]
            try:
                await asyncio.gather(*tasks)
            except Exception as e:
                logger.error("%s %s", started_at, e)
                raise ProbeLoopError(f"probe loop stopped: {e}") from e
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()
