"""Error taxonomy for the TinyBASIC engine.

Every fatal condition the engine can hit is a subclass of `BasicError`. The
executor fills in the BASIC line number that was running when the error was
raised, and hosts turn the exception into the structured error dict returned
by `Interpreter.run` via `BasicError.to_dict`.

None of these errors is recoverable inside a run: once raised, the
interpreter instance is halted and the host decides what to report.
"""

from typing import Any, Dict, Optional


class BasicError(Exception):
    """Base class for fatal interpreter conditions.

    Attributes:
        code: stable machine-readable error code (e.g. "SYNTAX_ERROR")
        line: BASIC line number being executed, when known
        column: optional 1-based column within the program text line
        hint: optional human-readable suggestion for fixing the program
    """

    code = "BASIC_ERROR"

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column
        self.hint = hint

    def to_dict(self) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": self.code, "message": self.message, "line": self.line}
        if self.column is not None:
            err["column"] = self.column
        if self.hint:
            err["hint"] = self.hint
        return err


class LexicalError(BasicError):
    """The scanner produced an error token (bad byte, over-long number, open string)."""

    code = "LEXICAL_ERROR"


class BasicSyntaxError(BasicError):
    """A statement expected one token kind and found another."""

    code = "SYNTAX_ERROR"


class UnknownLineError(BasicError):
    """GOTO/GOSUB/RETURN/NEXT targeted a line number that does not exist."""

    code = "UNKNOWN_LINE"

    def __init__(self, target: int, **kwargs):
        kwargs.setdefault("hint", "Jump targets must match an existing line number.")
        super().__init__(f"Line {target} not found", **kwargs)
        self.target = target


class CapacityError(BasicError):
    """A fixed-capacity structure (gosub or for stack) is full."""

    code = "CAPACITY_EXCEEDED"


class DivisionByZeroError(BasicError):
    code = "DIVISION_BY_ZERO"


class NestingDepthError(BasicError):
    code = "NESTING_TOO_DEEP"


class MemoryAccessError(BasicError):
    code = "MEMORY_ERROR"


class OutputLimitError(BasicError):
    code = "OUTPUT_LIMIT"
