"""Helpers to run a BASIC program in a small, controlled subprocess worker.

This module provides `run_code_in_subprocess`, a convenience wrapper that
launches the `_subprocess_worker` module (which follows a simple
JSON-over-stdin/stdout protocol). The function enforces a wall-clock timeout
and can apply light OS-level resource limits on POSIX systems (CPU seconds
and address-space / memory usage) so a runaway program cannot take the host
down with it.

Behavior and guarantees:
  - On POSIX, optional RLIMIT_CPU and RLIMIT_AS limits are applied using a
    preexec function. On Windows these limits are no-ops.
  - The worker is launched as a short-lived process with closed file
    descriptors and a minimal environment (PATH plus a PYTHONPATH pointing
    at this repository).
  - The function returns (returncode, stdout, stderr). A returncode of -1
    indicates the process was terminated due to timeout.
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

WORKER_MODULE = "backend.tinybasic._subprocess_worker"
REPO_ROOT = Path(__file__).resolve().parents[2]


def _make_posix_preexec(cpu_seconds: Optional[int], mem_limit_mb: Optional[int]):
    """Return a preexec_fn that applies resource limits on POSIX systems.

    The returned function is safe to attach to `subprocess.Popen(...,
    preexec_fn=...)`. If the `resource` module is unavailable the function
    becomes a no-op.
    """
    def preexec():
        try:
            import resource
        except ImportError:
            return

        # Limit CPU time (seconds)
        if cpu_seconds is not None:
            resource.setrlimit(resource.RLIMIT_CPU, (int(cpu_seconds), int(cpu_seconds)))

        # Limit address space (virtual memory) in bytes
        if mem_limit_mb is not None:
            mem_bytes = int(mem_limit_mb) * 1024 * 1024
            resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))

        # Start a new session to isolate signals
        try:
            os.setsid()
        except OSError:
            pass

    return preexec


def run_code_in_subprocess(
    code: str,
    timeout_s: int = 2,
    *,
    inputs: Optional[Dict[str, Any]] = None,
    settings: Optional[Dict[str, Any]] = None,
    cpu_seconds: Optional[int] = 2,
    mem_limit_mb: Optional[int] = 200,
) -> Tuple[int, str, str]:
    """Run the BASIC program `code` in the worker and return its outputs.

    Parameters:
      - code: BASIC program text sent to the worker via JSON on stdin.
      - timeout_s: wall-clock timeout for the whole operation (seconds).
      - inputs / settings: forwarded to `Interpreter.run` in the worker.
      - cpu_seconds: optional RLIMIT_CPU (seconds) applied on POSIX.
      - mem_limit_mb: optional RLIMIT_AS (MB) applied on POSIX.

    Returns (returncode, stdout, stderr). On timeout the function kills the
    process and returns (-1, "", "TIMEOUT").
    """
    runner_path = Path(__file__).parent / "_subprocess_worker.py"
    if not runner_path.exists():
        raise FileNotFoundError(str(runner_path))

    # Keep the child's environment minimal to reduce accidental access to
    # host secrets.
    env = {"PATH": os.environ.get("PATH", ""), "PYTHONPATH": str(REPO_ROOT)}

    popen_kwargs: Dict[str, Any] = dict(
        args=[sys.executable, "-m", WORKER_MODULE],
        stdin=subprocess.PIPE,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        env=env,
        cwd=str(REPO_ROOT),
        close_fds=True,
    )

    if os.name != "nt":
        popen_kwargs["preexec_fn"] = _make_posix_preexec(cpu_seconds, mem_limit_mb)
    else:
        popen_kwargs["creationflags"] = 0

    proc = subprocess.Popen(**popen_kwargs)

    payload = json.dumps({"code": code, "inputs": inputs or {}, "settings": settings or {}})
    try:
        out, err = proc.communicate(payload, timeout=timeout_s)
    except subprocess.TimeoutExpired:
        proc.kill()
        proc.communicate()
        return -1, "", "TIMEOUT"

    return proc.returncode, out or "", err or ""
