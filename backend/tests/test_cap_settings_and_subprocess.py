"""Unit tests for server-side caps and the subprocess worker contract.

- `test_cap_settings_clamps`: the FastAPI `_cap_settings` helper clamps
  client-provided budgets to the server-side Interpreter defaults.
- `test_subprocess_worker_contract`: the subprocess runner/worker follow the
  JSON-over-stdin/stdout contract and return a normal run-result dict.
"""

import json

from backend.app.main import _cap_settings
from backend.tinybasic.interpreter import Interpreter
from backend.tinybasic.subprocess_runner import run_code_in_subprocess


def test_cap_settings_clamps():
    requested = {
        "max_steps": 10_000_000,
        "max_time_s": 10_000.0,
        "max_output_chars": 10_000_000,
        "memory_size": 1 << 30,
        # pass-through options are not safety budgets
        "memory": {"1": 2},
        "strict_capacity": False,
    }

    capped = _cap_settings(requested)
    defaults = Interpreter()

    assert capped["max_steps"] <= defaults.max_steps
    assert capped["max_time_s"] <= defaults.max_time_s
    assert capped["max_output_chars"] <= defaults.max_output_chars
    assert capped["memory_size"] <= defaults.memory_size
    assert capped["memory"] == {"1": 2}
    assert capped["strict_capacity"] is False


def test_cap_settings_keeps_lower_values():
    capped = _cap_settings({"max_steps": 3})
    assert capped["max_steps"] == 3
    assert capped["max_output_chars"] == Interpreter().max_output_chars


def test_subprocess_worker_contract():
    rc, out, err = run_code_in_subprocess("10 a=7\n20 print a", timeout_s=5)
    assert rc == 0, f"subprocess returned non-zero rc: {rc}, stderr: {err}"

    j = json.loads(out)
    assert j["errors"] is None
    assert j["output"] == "7\n"
    assert j["variables"] == {"a": 7}


def test_subprocess_passes_settings():
    rc, out, _ = run_code_in_subprocess("10 goto 10", timeout_s=5, settings={"max_steps": 3})
    assert rc == 0
    assert json.loads(out)["errors"]["code"] == "STEP_LIMIT"


def test_run_with_use_subprocess():
    res = Interpreter().run("10 print 1+1", inputs={}, settings={"use_subprocess": True, "timeout_s": 5})
    assert res["errors"] is None
    assert res["output"] == "2\n"
