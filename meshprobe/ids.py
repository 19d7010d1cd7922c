# meshprobe/ids.py
import random
import re
from typing import Optional

# 1..8 hex digits keeps parsed ids inside the 32-bit range
_NODE_HEX = re.compile(r"[0-9a-fA-F]{1,8}")


def format_hex(v: int) -> str:
    return format(v, "08x")


def format_node_id(v: int) -> str:
    """Canonical node id text, e.g. 0x1 -> '!00000001'."""
    return "!" + format_hex(v)


def parse_node_id(text) -> Optional[int]:
    """
    Parse the '!hex' form back to an int.
    Returns None when the text is not a string, lacks the '!' prefix,
    or the remainder is not 1-8 hex digits.
    """
    if not isinstance(text, str) or not text.startswith("!"):
        return None
    digits = text[1:]
    if not _NODE_HEX.fullmatch(digits):
        return None
    return int(digits, 16)


def random32() -> int:
    # uniform over [0, 2**32 - 2]; only a content fingerprint, not a secret
    return random.randrange(0, 2 ** 32 - 1)
