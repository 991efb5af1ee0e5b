"""
Tracking number generation

Format: PREFIX + base-36 millisecond timestamp + random base-36 suffix,
uppercased, e.g. SHLZ3K9Q1A7XQ. The timestamp keeps numbers roughly
time-ordered; the suffix separates shipments created in the same
millisecond. The store's unique constraint stays the source of truth and
the orchestrator retries on collision.
"""
import re
import secrets
import time
from typing import Callable, Optional

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
TRACKING_NUMBER_MAX_LENGTH = 50
# Millisecond timestamps stay within 9 base-36 digits for the next few centuries
TIMESTAMP_MAX_DIGITS = 9


def to_base36(value: int) -> str:
    """Encode a non-negative integer in uppercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(ALPHABET[remainder])
    return "".join(reversed(digits))


def _millis() -> int:
    return time.time_ns() // 1_000_000


class TrackingNumberGenerator:
    """Produces public tracking identifiers."""

    def __init__(
        self,
        prefix: str = "SH",
        random_length: int = 4,
        clock: Optional[Callable[[], int]] = None,
    ):
        if not prefix or not prefix.isalpha():
            raise ValueError("prefix must be alphabetic")
        if random_length < 0:
            raise ValueError("random_length must be >= 0")
        if len(prefix) + TIMESTAMP_MAX_DIGITS + random_length > TRACKING_NUMBER_MAX_LENGTH:
            raise ValueError(f"tracking numbers must fit in {TRACKING_NUMBER_MAX_LENGTH} characters")

        self.prefix = prefix.upper()
        self.random_length = random_length
        self._clock = clock or _millis
        self._pattern = re.compile(rf"^{self.prefix}[0-9A-Z]{{1,{TIMESTAMP_MAX_DIGITS + random_length}}}$")

    def generate(self) -> str:
        stamp = to_base36(self._clock())
        suffix = "".join(secrets.choice(ALPHABET) for _ in range(self.random_length))
        return f"{self.prefix}{stamp}{suffix}"

    def matches(self, value: str) -> bool:
        """True if value has this generator's format."""
        return bool(self._pattern.match(value or ""))
