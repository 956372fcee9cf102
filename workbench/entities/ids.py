"""
Identifier and clock helpers shared by the registries.
"""

import random
import re
import time

ALPHANUM = "abcdefghijklmnopqrstuvwxyz0123456789"
ID_LENGTH = 8

# prefix-xxxxxxxx
ID_PATTERN = re.compile(rf"^[a-z]+-[{ALPHANUM}]{{{ID_LENGTH}}}$")


def create_id(prefix: str) -> str:
    """
    Create a prefixed opaque identifier, e.g. ``chat-k3x9a0qz``.

    Not cryptographically secure; collisions are negligible for a single
    local session.
    """
    suffix = "".join(random.choice(ALPHANUM) for _ in range(ID_LENGTH))
    return f"{prefix}-{suffix}"


def is_valid_id(value: str) -> bool:
    """Check whether a string has the shape produced by create_id."""
    return bool(ID_PATTERN.match(value))


def now_ms() -> int:
    """Current UTC time in epoch milliseconds."""
    return int(time.time() * 1000)
