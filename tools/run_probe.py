# tools/run_probe.py
# Usage examples:
#   python3 -m tools.run_probe
#   python3 -m tools.run_probe site-a.yaml
#   python3 -m tools.run_probe site-a.yaml --count 20 -v
#   python3 -m tools.run_probe probe.yaml --dry-run
#
# Exit codes: 0 help/stopped, 1 bad config, 2 broker unreachable,
# 3 probe loop fault, 64 bad command line.

import argparse
import asyncio
import logging
import sys

import aiomqtt

from meshprobe.bus.fake import FakeBus, mesh_responder
from meshprobe.bus.mqtt import BusConnectError, open_mqtt_bus
from meshprobe.config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from meshprobe.engine.controller import ProbeEngine, ProbeLoopError, uplink_prefix
from meshprobe.ids import format_node_id

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CONNECT = 2
EXIT_LOOP = 3
EXIT_USAGE = 64

logger = logging.getLogger("mesh-probe")


class ProbeArgumentParser(argparse.ArgumentParser):
    # argparse's own exit code 2 would collide with EXIT_CONNECT
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: error: {message}\n")


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return value


def build_argparser():
    ap = ProbeArgumentParser(prog="mesh-probe",
                             description="Measure delivery delay, RSSI and SNR between two mesh nodes over MQTT")
    ap.add_argument("config", nargs="?", default=DEFAULT_CONFIG_PATH,
                    help=f"Probe YAML config (default: {DEFAULT_CONFIG_PATH})")
    ap.add_argument("--count", type=_positive_int, default=None,
                    help="Stop after this many attempts (default: run forever)")
    ap.add_argument("--dry-run", action="store_true",
                    help="Probe a simulated gateway instead of the configured broker")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


async def run_with_fake(config, count=None):
    bus = FakeBus(responder=mesh_responder(uplink_prefix(config), format_node_id(config.to_node)))
    engine = await ProbeEngine.create(bus, config)
    await engine.loop(attempts=count)


async def run_with_mqtt(config, count=None):
    async with open_mqtt_bus(config.url, config.connect_timeout_s) as bus:
        try:
            engine = await ProbeEngine.create(bus, config)
        except aiomqtt.MqttError as e:
            raise BusConnectError(f"subscribe failed: {e}") from e

        pump = asyncio.ensure_future(bus.pump())
        probing = asyncio.ensure_future(engine.loop(attempts=count))
        try:
            await asyncio.wait({pump, probing}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (pump, probing):
                if not task.done():
                    task.cancel()
            await asyncio.gather(pump, probing, return_exceptions=True)

        if probing.done() and not probing.cancelled():
            # ProbeLoopError surfaces here; a clean finish returns None
            return probing.result()
        exc = pump.exception()
        logger.error("connection lost: %s", exc)
        raise ProbeLoopError(f"connection lost: {exc}") from exc


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    runner = run_with_fake if args.dry_run else run_with_mqtt
    try:
        asyncio.run(runner(config, args.count))
    except BusConnectError as e:
        print(e, file=sys.stderr)
        return EXIT_CONNECT
    except ProbeLoopError:
        return EXIT_LOOP
    except aiomqtt.MqttError as e:
        # e.g. the broker drops us while disconnecting after --count attempts
        logger.error("MQTT error: %s", e)
        return EXIT_LOOP
    except KeyboardInterrupt:
        print("Stop.")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
