"""Subprocess worker for running a single BASIC program.

This module is intended to be executed as a short-lived subprocess
(`python -m backend.tinybasic._subprocess_worker`). It reads one JSON object
from stdin with shape {"code": "...", "inputs": {...}, "settings": {...}},
runs the program with `Interpreter.run` and writes the run-result dict to
stdout as JSON.

The calling process enforces wall-clock timeouts and resource caps; the
worker only applies the interpreter's own step/time/output budgets.
"""

import json
import sys
from typing import Any, Dict

from backend.tinybasic.interpreter import Interpreter


def run_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Run the program described by `payload` and return the result dict."""
    settings = dict(payload.get("settings") or {})
    # never recurse into another worker
    settings.pop("use_subprocess", None)
    it = Interpreter()
    return it.run(payload.get("code", ""), inputs=payload.get("inputs") or {}, settings=settings)


def main() -> None:
    raw = sys.stdin.read()
    try:
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("payload must be a JSON object")
    except ValueError as e:
        # Communicate payload decoding errors via JSON to the parent process
        print(json.dumps({"errors": {"code": "BAD_PAYLOAD", "message": str(e)}}))
        sys.exit(1)

    print(json.dumps(run_payload(payload)))


if __name__ == "__main__":
    main()
