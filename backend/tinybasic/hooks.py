"""Host capabilities injected into the interpreter.

Two narrow contracts connect the engine to the outside world:

- a memory bus (`peek` / `poke`) used by the PEEK and POKE statements
- an output sink (`print_text` / `print_number`) used by PRINT

Absence of a capability is modelled by an explicit no-op provider
(`NullMemoryBus`) rather than None checks in the statement handlers.
"""

import sys
from typing import Callable, Dict, List, Optional, Protocol, TextIO

from .errors import MemoryAccessError, OutputLimitError

PeekFunc = Callable[[int], int]
PokeFunc = Callable[[int, int], None]


class MemoryBus(Protocol):
    def peek(self, address: int) -> Optional[int]:
        ...

    def poke(self, address: int, value: int) -> None:
        ...


class NullMemoryBus:
    """No peek/poke provider: PEEK leaves its variable alone, POKE does nothing."""

    def peek(self, address: int) -> Optional[int]:
        return None

    def poke(self, address: int, value: int) -> None:
        return None


class CallbackMemoryBus:
    """Adapt a pair of plain callables (either may be None) to `MemoryBus`."""

    def __init__(self, peek: Optional[PeekFunc] = None, poke: Optional[PokeFunc] = None):
        self._peek = peek
        self._poke = poke

    def peek(self, address: int) -> Optional[int]:
        if self._peek is None:
            return None
        return int(self._peek(address))

    def poke(self, address: int, value: int) -> None:
        if self._poke is not None:
            self._poke(address, value)


def memory_bus(peek: Optional[PeekFunc] = None, poke: Optional[PokeFunc] = None) -> MemoryBus:
    if peek is None and poke is None:
        return NullMemoryBus()
    return CallbackMemoryBus(peek, poke)


class MemoryMap:
    """Bounded, sparse, byte-wide address space backed by a dict.

    Used by the hosts (run driver, API, CLI) to give PEEK/POKE something to
    talk to. Unwritten cells read as 0; values are stored modulo 256.

    Args:
        size: number of addressable cells (addresses 0..size-1)
        initial: optional mapping of address -> value to preload
    """

    def __init__(self, size: int = 65536, initial: Optional[Dict[int, int]] = None):
        self.size = size
        self._cells: Dict[int, int] = {}
        for addr, value in (initial or {}).items():
            self.poke(int(addr), int(value))

    def _check(self, address: int) -> None:
        if not 0 <= address < self.size:
            raise MemoryAccessError(
                f"Address {address} out of range 0..{self.size - 1}",
                hint="PEEK/POKE addresses must fall inside the host memory map.",
            )

    def peek(self, address: int) -> int:
        self._check(address)
        return self._cells.get(address, 0)

    def poke(self, address: int, value: int) -> None:
        self._check(address)
        value &= 0xFF
        if value:
            self._cells[address] = value
        else:
            self._cells.pop(address, None)

    def snapshot(self) -> Dict[int, int]:
        """Return the non-zero cells, ordered by address."""
        return dict(sorted(self._cells.items()))


class OutputSink(Protocol):
    def print_text(self, s: str) -> None:
        ...

    def print_number(self, n: int) -> None:
        ...


class StreamOutput:
    """Write PRINT output straight to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    def print_text(self, s: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(s)
        stream.flush()

    def print_number(self, n: int) -> None:
        self.print_text(str(n))


class BufferedOutput:
    """Collect PRINT output in memory, enforcing a character cap.

    Args:
        max_chars: raise `OutputLimitError` once more than this many
            characters would be buffered; None disables the cap.
    """

    def __init__(self, max_chars: Optional[int] = None):
        self.max_chars = max_chars
        self._chunks: List[str] = []
        self._size = 0

    def print_text(self, s: str) -> None:
        if self.max_chars is not None and self._size + len(s) > self.max_chars:
            raise OutputLimitError("Output length limit reached")
        self._chunks.append(s)
        self._size += len(s)

    def print_number(self, n: int) -> None:
        self.print_text(str(n))

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def __len__(self) -> int:
        return self._size
