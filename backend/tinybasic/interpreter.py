"""TinyBASIC interpreter module.

This module implements the statement executor for a small line-numbered
BASIC dialect, plus the run driver the hosts (API, CLI, subprocess worker)
use to execute whole programs under runtime budgets.

The engine is built for step-wise execution: `Interpreter.step` runs exactly
one line-statement (including the nested statement after THEN/ELSE) and
returns, so a host loop can interleave interpreter steps with other work.
All state lives in fixed-capacity structures owned by the instance:

- a lazy `Scanner` over the borrowed program text
- a `LineIndex` cache of line number -> scanner position
- bounded GOSUB and FOR stacks
- 26 integer variables `a`..`z`

Errors are never repaired. Any `BasicError` raised by a statement halts the
instance; `Interpreter.run` turns it into the structured error dict returned
to callers.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple, Union

from . import subprocess_runner
from .errors import BasicError, BasicSyntaxError, CapacityError, LexicalError, UnknownLineError
from .evaluator import MAX_EXPR_DEPTH, ExpressionEvaluator, accept
from .hooks import BufferedOutput, MemoryBus, MemoryMap, NullMemoryBus, OutputSink, StreamOutput, memory_bus
from .line_index import MAX_LINE_INDEXES, LineIndex
from .state import (
    MAX_FOR_STACK_DEPTH,
    MAX_GOSUB_STACK_DEPTH,
    BoundedStack,
    ForFrame,
    GosubFrame,
    VariableStore,
)
from .tokenizer import MAX_STRING_LEN, Scanner, TokenKind

logger = logging.getLogger(__name__)


class Interpreter:
    """Top-level TinyBASIC interpreter class.

    Responsibilities:
    - step through a loaded program one line-statement at a time,
    - own every piece of interpreter state (no module-level globals),
    - run whole programs under runtime limits for the hosts (`run`).

    Args:
        output: sink for PRINT; defaults to stdout.
        memory: peek/poke provider; defaults to the no-op provider.
        gosub_depth, for_depth: control-flow stack capacities.
        max_lines: line index cache capacity.
        max_expr_depth: maximum parenthesis nesting in expressions.
        max_string_len: string literals longer than this print truncated.
        strict_capacity: when False, GOSUB/FOR beyond the stack depth are
            silently dropped (logged) instead of raising `CapacityError`.

    Tunable attributes used by `run` (can be overridden via settings):
    - max_steps, max_time_s, max_output_chars: runtime safety caps
    - memory_size: size of the host memory map given to PEEK/POKE
    """

    def __init__(
        self,
        output: Optional[OutputSink] = None,
        memory: Optional[MemoryBus] = None,
        *,
        gosub_depth: int = MAX_GOSUB_STACK_DEPTH,
        for_depth: int = MAX_FOR_STACK_DEPTH,
        max_lines: int = MAX_LINE_INDEXES,
        max_expr_depth: int = MAX_EXPR_DEPTH,
        max_string_len: int = MAX_STRING_LEN,
        strict_capacity: bool = True,
    ):
        # Safety limits enforced per-run
        self.max_steps = 100000
        self.max_time_s = 1.5
        self.max_output_chars = 5000
        self.memory_size = 65536

        self.output: OutputSink = output if output is not None else StreamOutput()
        self.memory: MemoryBus = memory if memory is not None else NullMemoryBus()
        self.max_string_len = max_string_len
        self.strict_capacity = strict_capacity

        self.variables = VariableStore()
        self.scanner = Scanner()
        self.evaluator = ExpressionEvaluator(self.scanner, self.variables, max_expr_depth)
        self.line_index = LineIndex(max_lines)
        self.gosub_stack: BoundedStack[GosubFrame] = BoundedStack(gosub_depth, "gosub")
        self.for_stack: BoundedStack[ForFrame] = BoundedStack(for_depth, "for")

        self.current_line: Optional[int] = None
        self.error: Optional[BasicError] = None
        self._ended = False
        # >0 while executing the statement after THEN; lets ELSE end it
        self._then_depth = 0

        self._statements: Dict[TokenKind, Callable[[], None]] = {
            TokenKind.PRINT: self._print_statement,
            TokenKind.IF: self._if_statement,
            TokenKind.GOTO: self._goto_statement,
            TokenKind.GOSUB: self._gosub_statement,
            TokenKind.RETURN: self._return_statement,
            TokenKind.FOR: self._for_statement,
            TokenKind.NEXT: self._next_statement,
            TokenKind.PEEK: self._peek_statement,
            TokenKind.POKE: self._poke_statement,
            TokenKind.END: self._end_statement,
            TokenKind.LET: self._let_statement,
            TokenKind.VARIABLE: self._let_statement,
        }

    # --- Public engine API ---------------------------------------------
    def init(
        self,
        program: str,
        peek: Optional[Callable[[int], int]] = None,
        poke: Optional[Callable[[int, int], None]] = None,
        *,
        clear_variables: bool = False,
    ) -> None:
        """Load `program` and reset cursor, stacks, line index and end flag.

        Variables keep their values unless `clear_variables` is set. Passing
        `peek`/`poke` replaces the memory provider; otherwise the current
        one is kept.
        """
        if peek is not None or poke is not None:
            self.memory = memory_bus(peek, poke)
        self.gosub_stack.clear()
        self.for_stack.clear()
        self.line_index.clear()
        self.evaluator.reset()
        self.scanner.init(program)
        self.current_line = None
        self.error = None
        self._ended = False
        self._then_depth = 0
        if clear_variables:
            self.reset_variables()

    def reset_variables(self) -> None:
        self.variables.clear()

    def step(self) -> None:
        """Execute one line-statement; no-op once finished.

        Raises:
            BasicError: on any fatal condition. The instance is halted
                afterwards and `finished` reports True.
        """
        if self.finished:
            return
        try:
            self._line_statement()
        except BasicError as e:
            if e.line is None:
                e.line = self.current_line
            self.error = e
            logger.debug("halted at line %s: %s", e.line, e.message)
            raise

    @property
    def finished(self) -> bool:
        return self._ended or self.error is not None or self.scanner.is_finished()

    def is_finished(self) -> bool:
        return self.finished

    def get_variable(self, name: Union[int, str]) -> int:
        return self.variables.get(name)

    def set_variable(self, name: Union[int, str], value: int) -> None:
        self.variables.set(name, value)

    # --- Line handling -------------------------------------------------
    def _line_statement(self) -> None:
        scanner = self.scanner
        # blank lines carry no statement
        while scanner.current() is TokenKind.CR:
            scanner.advance()
        if scanner.is_finished():
            return
        if scanner.current() is not TokenKind.NUMBER:
            accept(scanner, TokenKind.NUMBER)
        line = scanner.numeric_value()
        self.current_line = line
        if self.line_index.record(line, scanner.position()):
            logger.debug("indexed line %d at offset %d", line, scanner.position())
        accept(scanner, TokenKind.NUMBER)
        if scanner.comment_skipped:
            # the whole line was a rem comment
            return
        self._statement()

    def _statement(self) -> None:
        token = self.scanner.current()
        handler = self._statements.get(token)
        if handler is None:
            if token is TokenKind.ERROR:
                raise LexicalError(f"Invalid token {self.scanner.describe()}", column=self.scanner.column())
            raise BasicSyntaxError(
                f"Unknown statement: {self.scanner.describe()}",
                column=self.scanner.column(),
                hint="Statements are let, print, if, goto, gosub, return, for, next, peek, poke, end.",
            )
        handler()

    def _at_statement_end(self) -> bool:
        scanner = self.scanner
        if scanner.at_line_end():
            return True
        return self._then_depth > 0 and scanner.current() is TokenKind.ELSE

    def _accept_line_end(self) -> None:
        """Consume the line terminator (end of input and comments count too).

        Inside a THEN branch an ELSE also ends the statement; the rest of
        the line (the ELSE branch) is skipped.
        """
        scanner = self.scanner
        if self._then_depth > 0 and scanner.current() is TokenKind.ELSE:
            while not scanner.at_line_end():
                scanner.advance()
        if scanner.comment_skipped or scanner.current() is TokenKind.END_OF_INPUT:
            return
        accept(scanner, TokenKind.CR)

    def _next_line_number(self) -> Optional[int]:
        """Line number of the line the cursor now sits on, None at end of input."""
        scanner = self.scanner
        while scanner.current() is TokenKind.CR:
            scanner.advance()
        if scanner.current() is TokenKind.NUMBER:
            return scanner.numeric_value()
        return None

    # --- Jumps ---------------------------------------------------------
    def _jump(self, line_number: Optional[int]) -> None:
        if line_number is None:
            # resume point past the last line: run off the end
            self.scanner.goto(len(self.scanner.text))
            return
        pos = self.line_index.lookup(line_number)
        if pos is not None:
            logger.debug("jump to line %d (cached)", line_number)
            self.scanner.goto(pos)
            return
        logger.debug("jump to line %d (not indexed, scanning)", line_number)
        self._jump_slow(line_number)

    def _jump_slow(self, line_number: int) -> None:
        """Rescan from the top of the program, line by line, for `line_number`."""
        scanner = self.scanner
        scanner.goto(0)
        while True:
            while scanner.current() is TokenKind.CR:
                scanner.advance()
            token = scanner.current()
            if token is TokenKind.END_OF_INPUT:
                raise UnknownLineError(line_number)
            if token is TokenKind.NUMBER and scanner.numeric_value() == line_number:
                return
            scanner.advance()
            while not scanner.at_line_end():
                scanner.advance()
            if scanner.current() is TokenKind.CR and not scanner.comment_skipped:
                scanner.advance()

    def _stack_full(self, stack: BoundedStack, statement: str) -> bool:
        """Apply the capacity policy; True means the push must be skipped."""
        if not stack.full:
            return False
        if self.strict_capacity:
            raise CapacityError(
                f"{statement} nesting exceeds {stack.name} stack depth {stack.capacity}",
                hint=f"Reduce nested {statement} calls or raise the {stack.name} stack depth.",
            )
        logger.warning(
            "%s stack full (depth %d); %s at line %s dropped",
            stack.name,
            stack.capacity,
            statement,
            self.current_line,
        )
        return True

    # --- Statements ----------------------------------------------------
    def _print_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.PRINT)
        while not self._at_statement_end():
            token = scanner.current()
            if token is TokenKind.STRING:
                self.output.print_text(scanner.string_contents(self.max_string_len))
                scanner.advance()
            elif token is TokenKind.COMMA:
                self.output.print_text(" ")
                scanner.advance()
            elif token is TokenKind.SEMICOLON:
                scanner.advance()
            elif token in (TokenKind.VARIABLE, TokenKind.NUMBER, TokenKind.LEFTPAREN):
                self.output.print_number(self.evaluator.expr())
            elif token is TokenKind.ERROR:
                raise LexicalError(f"Invalid token {scanner.describe()}", column=scanner.column())
            else:
                raise BasicSyntaxError(
                    f"Unexpected {scanner.describe()} in print list",
                    column=scanner.column(),
                    hint='Separate items with , or ; (e.g. print "a=", a).',
                )
        self.output.print_text("\n")
        self._accept_line_end()

    def _if_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.IF)
        r = self.evaluator.relation()
        accept(scanner, TokenKind.THEN)
        if r:
            self._then_depth += 1
            try:
                self._statement()
            finally:
                self._then_depth -= 1
            return
        while not (scanner.at_line_end() or scanner.current() is TokenKind.ELSE):
            scanner.advance()
        if scanner.current() is TokenKind.ELSE and not scanner.comment_skipped:
            scanner.advance()
            self._statement()
        else:
            self._accept_line_end()

    def _let_statement(self) -> None:
        scanner = self.scanner
        if scanner.current() is TokenKind.LET:
            accept(scanner, TokenKind.LET)
        if scanner.current() is not TokenKind.VARIABLE:
            accept(scanner, TokenKind.VARIABLE)
        var = scanner.variable_index()
        accept(scanner, TokenKind.VARIABLE)
        accept(scanner, TokenKind.EQ)
        self.variables.set(var, self.evaluator.expr())
        self._accept_line_end()

    def _goto_statement(self) -> None:
        accept(self.scanner, TokenKind.GOTO)
        self._jump(self.evaluator.expr())

    def _gosub_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.GOSUB)
        if scanner.current() is not TokenKind.NUMBER:
            accept(scanner, TokenKind.NUMBER)
        target = scanner.numeric_value()
        accept(scanner, TokenKind.NUMBER)
        self._accept_line_end()
        if self._stack_full(self.gosub_stack, "gosub"):
            return
        resume = self._next_line_number()
        self.gosub_stack.push(GosubFrame(resume))
        logger.debug("gosub %d from line %s (depth %d)", target, self.current_line, len(self.gosub_stack))
        self._jump(target)

    def _return_statement(self) -> None:
        accept(self.scanner, TokenKind.RETURN)
        frame = self.gosub_stack.pop()
        if frame is None:
            logger.debug("return with empty gosub stack at line %s", self.current_line)
            self._accept_line_end()
            return
        self._jump(frame.resume_line)

    def _for_statement(self) -> None:
        scanner = self.scanner
        evaluator = self.evaluator
        accept(scanner, TokenKind.FOR)
        if scanner.current() is not TokenKind.VARIABLE:
            accept(scanner, TokenKind.VARIABLE)
        var = scanner.variable_index()
        accept(scanner, TokenKind.VARIABLE)
        accept(scanner, TokenKind.EQ)
        self.variables.set(var, evaluator.expr())
        accept(scanner, TokenKind.TO)
        upper = evaluator.expr()
        self._accept_line_end()
        if self._stack_full(self.for_stack, "for"):
            return
        self.for_stack.push(ForFrame(self._next_line_number(), var, upper))

    def _next_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.NEXT)
        if scanner.current() is not TokenKind.VARIABLE:
            accept(scanner, TokenKind.VARIABLE)
        var = scanner.variable_index()
        accept(scanner, TokenKind.VARIABLE)
        frame = self.for_stack.peek()
        if frame is None or frame.variable != var:
            self._accept_line_end()
            return
        self.variables.set(var, self.variables.get(var) + 1)
        if self.variables.get(var) <= frame.upper_bound:
            self._jump(frame.resume_line)
        else:
            self.for_stack.pop()
            self._accept_line_end()

    def _peek_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.PEEK)
        address = self.evaluator.expr()
        accept(scanner, TokenKind.COMMA)
        if scanner.current() is not TokenKind.VARIABLE:
            accept(scanner, TokenKind.VARIABLE)
        var = scanner.variable_index()
        accept(scanner, TokenKind.VARIABLE)
        self._accept_line_end()
        value = self.memory.peek(address)
        if value is not None:
            self.variables.set(var, value)

    def _poke_statement(self) -> None:
        scanner = self.scanner
        accept(scanner, TokenKind.POKE)
        address = self.evaluator.expr()
        accept(scanner, TokenKind.COMMA)
        value = self.evaluator.expr()
        self._accept_line_end()
        self.memory.poke(address, value)

    def _end_statement(self) -> None:
        accept(self.scanner, TokenKind.END)
        self._ended = True

    # --- Run driver ----------------------------------------------------
    def _err(self, code: str, message: str, *, line: Optional[int] = None, hint: Optional[str] = None) -> Dict[str, Any]:
        err: Dict[str, Any] = {"code": code, "message": message, "line": line}
        if hint:
            err["hint"] = hint
        return err

    def run(
        self,
        code: str,
        inputs: Optional[Dict[str, Any]] = None,
        settings: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Run a whole program and return a result dict.

        Args:
            code: BASIC program text.
            inputs: optional initial variable values, e.g. {"a": 5}.
            settings: optional overrides for max_steps, max_time_s,
                max_output_chars, memory_size, strict_capacity, plus
                `memory` ({address: value} preload) and `use_subprocess`.

        Returns:
            {"output", "warnings", "errors", "steps", "variables", "memory"}
            where `errors` is None on success or a structured error dict.
        """
        settings_local: Dict[str, Any] = settings or {}
        if settings_local.get("use_subprocess"):
            return self._maybe_run_in_subprocess(settings_local, code, inputs or {})

        output, warnings, steps, err, memory = self._execute_core(code, inputs or {}, settings_local)
        return self._finalize_run(output, warnings, steps, err, memory)

    def _execute_core(
        self,
        code: str,
        inputs: Dict[str, Any],
        settings: Dict[str, Any],
    ) -> Tuple[BufferedOutput, list, int, Optional[Dict[str, Any]], MemoryMap]:
        """Core run loop: step until finished while enforcing budgets.

        Returns (output, warnings, steps, error_or_none, memory).
        """
        max_steps = int(settings.get("max_steps", self.max_steps))
        max_time_s = float(settings.get("max_time_s", self.max_time_s))
        max_output_chars = int(settings.get("max_output_chars", self.max_output_chars))

        output = BufferedOutput(max_output_chars)
        warnings: list = []
        steps = 0
        try:
            memory = MemoryMap(int(settings.get("memory_size", self.memory_size)), settings.get("memory"))
        except (BasicError, TypeError, ValueError) as e:
            return output, warnings, steps, self._err("MEMORY_ERROR", f"Invalid memory preload: {e}"), MemoryMap(0)

        saved_output, saved_memory, saved_strict = self.output, self.memory, self.strict_capacity
        self.output, self.memory = output, memory
        self.strict_capacity = bool(settings.get("strict_capacity", saved_strict))
        try:
            self.init(code, clear_variables=True)
            for name, value in inputs.items():
                if len(str(name)) != 1 or not "a" <= str(name) <= "z":
                    return output, warnings, steps, self._err(
                        "INPUT_ERROR", f"Invalid variable name '{name}'", hint="Inputs are single letters a-z."
                    ), memory
                try:
                    self.set_variable(str(name), int(value))
                except (TypeError, ValueError):
                    return output, warnings, steps, self._err(
                        "INPUT_ERROR", f"Input '{name}' is not an integer"
                    ), memory

            start_wall = time.time()
            while not self.finished:
                # enforce wall-clock timeout per-run
                if time.time() - start_wall > max_time_s:
                    return output, warnings, steps, self._err(
                        "TIMEOUT", "Time limit exceeded", line=self.current_line
                    ), memory
                if steps >= max_steps:
                    warnings.append("Step limit exceeded")
                    return output, warnings, steps, self._err(
                        "STEP_LIMIT", "Step limit exceeded", line=self.current_line
                    ), memory
                try:
                    self.step()
                except BasicError as e:
                    return output, warnings, steps, e.to_dict(), memory
                steps += 1
        finally:
            self.output, self.memory = saved_output, saved_memory
            self.strict_capacity = saved_strict

        if self.gosub_stack:
            warnings.append(f"Program ended inside {len(self.gosub_stack)} unreturned gosub(s)")
        if self.for_stack:
            warnings.append(f"Program ended inside {len(self.for_stack)} unfinished for loop(s)")
        return output, warnings, steps, None, memory

    def _finalize_run(
        self,
        output: BufferedOutput,
        warnings: list,
        steps: int,
        err: Optional[Dict[str, Any]],
        memory: MemoryMap,
    ) -> Dict[str, Any]:
        """Produce the final run result dict."""
        if err:
            logger.info("run stopped after %d steps: %s", steps, err.get("code"))
        else:
            logger.info("run finished in %d steps, %d chars of output", steps, len(output))
        return {
            "output": output.text,
            "warnings": warnings,
            "errors": err,
            "steps": steps,
            "variables": self.variables.as_dict(nonzero_only=True),
            "memory": {str(addr): value for addr, value in memory.snapshot().items()},
        }

    def _maybe_run_in_subprocess(self, settings: Dict[str, Any], code: str, inputs: Dict[str, Any]) -> Dict[str, Any]:
        # Run the program in a sandboxed subprocess. This isolates runaway or
        # memory-hungry programs from the calling process.
        child_settings = {k: v for k, v in settings.items() if k not in ("use_subprocess", "timeout_s")}
        child_settings.setdefault("max_steps", self.max_steps)
        child_settings.setdefault("max_time_s", self.max_time_s)
        child_settings.setdefault("max_output_chars", self.max_output_chars)
        empty = {"output": "", "warnings": [], "steps": 0, "variables": {}, "memory": {}}
        try:
            rc, out, err = subprocess_runner.run_code_in_subprocess(
                code,
                timeout_s=int(settings.get("timeout_s", 2)),
                inputs=inputs,
                settings=child_settings,
            )
        except (OSError, ValueError) as e:
            return dict(empty, errors=self._err("SUBPROCESS_ERROR", str(e)))
        if rc != 0:
            return dict(empty, output=out, errors=self._err("SUBPROCESS_FAILED", err or f"worker exited with {rc}"))
        try:
            payload = json.loads(out)
        except ValueError:
            return dict(empty, output=out, errors=self._err("SUBPROCESS_FAILED", "Malformed worker response"))
        return dict(empty, **payload)
