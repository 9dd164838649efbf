"""Identifier generator for prompt logs: LOG-<year>-<sequence>."""

import re
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

ID_PREFIX = "LOG"
SEQUENCE_WIDTH = 6

_ID_PATTERN = re.compile(r"^LOG-(\d{4})-(\d+)$")


def format_id(year: int, sequence: int) -> str:
    return f"{ID_PREFIX}-{year}-{sequence:0{SEQUENCE_WIDTH}d}"


def parse_sequence(log_id: str, year: int) -> Optional[int]:
    """Return the sequence part of a generated id for ``year``, else None."""
    match = _ID_PATTERN.match(log_id or "")
    if not match or int(match.group(1)) != year:
        return None
    return int(match.group(2))


class IdGenerator:
    """Hands out ``LOG-<year>-<seq>`` ids, never repeating one it produced.

    A counter is kept per calendar year. ``seed`` is consulted the first time
    a year is seen and must return the highest sequence already in use for it,
    so a persistent store can resume after a restart. Each candidate is also
    checked with ``taken`` before being returned, which skips over ids a
    caller supplied explicitly.
    """

    def __init__(
        self,
        seed: Optional[Callable[[int], int]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._seed = seed
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._counters: Dict[int, int] = {}
        self._lock = threading.Lock()

    def next_id(self, taken: Optional[Callable[[str], bool]] = None) -> str:
        year = self._clock().year
        with self._lock:
            if year not in self._counters:
                self._counters[year] = self._seed(year) if self._seed else 0
            while True:
                self._counters[year] += 1
                candidate = format_id(year, self._counters[year])
                if taken is None or not taken(candidate):
                    return candidate
