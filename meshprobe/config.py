# meshprobe/config.py
from dataclasses import dataclass
from urllib.parse import urlsplit

import yaml

from meshprobe.ids import parse_node_id

DEFAULT_CONFIG_PATH = "probe.yaml"
URL_SCHEMES = ("mqtt", "tcp", "mqtts", "ssl", "ws", "wss")


class ConfigError(ValueError):
    """Configuration file is missing, unreadable or invalid."""


@dataclass(frozen=True)
class ProbeConfig:
    url: str
    topic: str
    uplink_channel: str
    from_node: int
    to_node: int
    extra_load: int = 0
    timeout_ms: int = 5000
    interval_ms: int = 10000
    connect_timeout_ms: int = 5000

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def connect_timeout_s(self) -> float:
        return self.connect_timeout_ms / 1000.0


def _require_str(raw: dict, key: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value.strip()


def _require_node(raw: dict, key: str) -> int:
    node = parse_node_id(raw.get(key))
    if node is None:
        raise ConfigError(f"'{key}' must be a node id like '!1234abcd', got {raw.get(key)!r}")
    return node


def _int_field(raw: dict, key: str, default=None, minimum: int = 0) -> int:
    value = raw.get(key, default)
    if value is None:
        raise ConfigError(f"'{key}' is required")
    # bool is an int subclass; YAML 'yes' must not become 1
    if isinstance(value, bool):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if isinstance(value, str):
        try:
            value = int(value.strip(), 10)
        except ValueError:
            raise ConfigError(f"'{key}' must be an integer, got {value!r}") from None
    if not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer, got {value!r}")
    if value < minimum:
        raise ConfigError(f"'{key}' must be >= {minimum}, got {value}")
    return value


def parse_config(raw) -> ProbeConfig:
    """Validate a decoded YAML mapping and build a ProbeConfig."""
    if not isinstance(raw, dict):
        raise ConfigError("configuration must be a mapping")

    url = _require_str(raw, "url")
    parts = urlsplit(url)
    if parts.scheme not in URL_SCHEMES or not parts.hostname:
        raise ConfigError(f"'url' must look like mqtt://host[:port], got {url!r}")

    return ProbeConfig(
        url=url,
        topic=_require_str(raw, "topic").rstrip("/"),
        uplink_channel=_require_str(raw, "uplinkChannel"),
        from_node=_require_node(raw, "from"),
        to_node=_require_node(raw, "to"),
        extra_load=_int_field(raw, "extraLoad", default=0, minimum=0),
        timeout_ms=_int_field(raw, "timeout", minimum=1),
        interval_ms=_int_field(raw, "interval", minimum=1),
        connect_timeout_ms=_int_field(raw, "connectTimeout", default=5000, minimum=1),
    )


def load_config(path: str = DEFAULT_CONFIG_PATH) -> ProbeConfig:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    return parse_config(raw)
