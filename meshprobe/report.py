# meshprobe/report.py
from datetime import datetime, timezone
from typing import Optional

from meshprobe.ids import format_hex
from meshprobe.schemas import ProbeOutcome, ProbeStatus


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC with milliseconds and a 'Z' suffix, e.g. 2024-05-01T12:00:00.250Z"""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _num(v) -> str:
    # gateways send integral floats for some readings; print them as ints
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


def format_packet_id(packet_id) -> str:
    if isinstance(packet_id, int) and not isinstance(packet_id, bool) and packet_id >= 0:
        return format_hex(packet_id)
    # opaque ids get the same 8-wide zero padding as hex ones
    return str(packet_id).rjust(8, "0")


def render_line(started_at: str, outcome: ProbeOutcome) -> str:
    if outcome.status is ProbeStatus.SUCCESS and outcome.result is not None:
        r = outcome.result
        return (f"{started_at} {_num(r.delay_ms):>6} {format_packet_id(r.packet_id)} "
                f"{_num(r.rssi):>4} {_num(r.snr):>6}")
    if outcome.status is ProbeStatus.TIMEOUT:
        return f"{started_at} timeout (no rx report)"
    if outcome.status is ProbeStatus.NOT_TRANSMITTED:
        return f"{started_at} failure (no tx report)"
    return f"{started_at} failure (internal error)"
