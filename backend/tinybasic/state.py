"""Fixed-capacity interpreter state: control-flow stacks and the variable store."""

from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar, Union

MAX_GOSUB_STACK_DEPTH = 10
MAX_FOR_STACK_DEPTH = 4
MAX_VARNUM = 26

T = TypeVar("T")


def wrap32(value: int) -> int:
    """Wrap an integer to the signed 32-bit range."""
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


@dataclass(frozen=True)
class ForFrame:
    """Saved FOR-loop state.

    `resume_line` is the line following the FOR header, or None when the
    FOR was the last line of the program.
    """

    resume_line: Optional[int]
    variable: int
    upper_bound: int


@dataclass(frozen=True)
class GosubFrame:
    """Resume point for RETURN; None means the GOSUB was the last line."""

    resume_line: Optional[int]


class BoundedStack(Generic[T]):
    """LIFO stack with a fixed maximum depth.

    The stack itself never decides what happens on overflow; callers check
    `full` and apply their capacity policy.
    """

    def __init__(self, capacity: int, name: str = "stack"):
        self.capacity = capacity
        self.name = name
        self._items: List[T] = []

    @property
    def full(self) -> bool:
        return len(self._items) >= self.capacity

    def push(self, item: T) -> None:
        if self.full:
            raise OverflowError(f"{self.name} stack full")
        self._items.append(item)

    def pop(self) -> Optional[T]:
        return self._items.pop() if self._items else None

    def peek(self) -> Optional[T]:
        return self._items[-1] if self._items else None

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self):
        return iter(list(self._items))


def variable_slot(name: Union[int, str]) -> int:
    """Translate 'a'..'z' or a 0-based index into a slot index (may be out of range)."""
    if isinstance(name, str):
        if len(name) != 1:
            return -1
        return ord(name) - ord("a")
    return int(name)


class VariableStore:
    """26 signed integer cells, one per lowercase letter, default 0.

    Out-of-range slots read as 0 and writes to them are ignored.
    """

    def __init__(self, size: int = MAX_VARNUM):
        self._cells = [0] * size

    def get(self, name: Union[int, str]) -> int:
        slot = variable_slot(name)
        if 0 <= slot < len(self._cells):
            return self._cells[slot]
        return 0

    def set(self, name: Union[int, str], value: int) -> None:
        slot = variable_slot(name)
        if 0 <= slot < len(self._cells):
            self._cells[slot] = wrap32(int(value))

    def clear(self) -> None:
        self._cells = [0] * len(self._cells)

    def as_dict(self, nonzero_only: bool = False) -> dict:
        return {
            chr(ord("a") + i): v
            for i, v in enumerate(self._cells)
            if v or not nonzero_only
        }
