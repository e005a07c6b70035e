"""Bounded cache mapping BASIC line numbers to scanner positions.

Lines register themselves as they execute, so a forward jump to a line that
has not run yet misses the cache once and takes the interpreter's slow
linear scan; every later jump to it is a dictionary hit. When the table is
full new lines are simply not cached.
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)

MAX_LINE_INDEXES = 256


class LineIndex:
    def __init__(self, capacity: int = MAX_LINE_INDEXES):
        self.capacity = capacity
        self._positions: Dict[int, int] = {}
        self._warned_full = False

    def lookup(self, line_number: int) -> Optional[int]:
        return self._positions.get(line_number)

    def record(self, line_number: int, position: int) -> bool:
        """Cache `position` for `line_number`; first insertion wins.

        Returns True when a new entry was added.
        """
        if line_number in self._positions:
            return False
        if self.full:
            if not self._warned_full:
                logger.warning("line index full (%d entries); line %d not cached", self.capacity, line_number)
                self._warned_full = True
            return False
        self._positions[line_number] = position
        return True

    def clear(self) -> None:
        self._positions.clear()
        self._warned_full = False

    @property
    def full(self) -> bool:
        return len(self._positions) >= self.capacity

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, line_number: int) -> bool:
        return line_number in self._positions
