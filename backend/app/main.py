"""FastAPI application entrypoints for TinyBASIC.

This module exposes HTTP endpoints for running and saving BASIC programs. It
keeps handlers intentionally small: each `/run` request constructs a fresh
`Interpreter` so no engine state is shared between requests. Server-side caps
are enforced against the module-level `interpreter` defaults, so clients
cannot raise resource limits above what the server allows.
"""

import time
from typing import Any, Dict, Optional

from fastapi import FastAPI
from pydantic import BaseModel

from .. import db
from ..tinybasic.interpreter import Interpreter

app = FastAPI(title="TinyBASIC API", version="0.1")

# Server-side ceilings; tests and operators may lower these at runtime.
interpreter = Interpreter()


def _cap_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Enforce server-side safe caps for runtime tunables.

    Clients may include a `settings` object with per-run tunables. The server
    does not trust these entirely: numeric budgets are clamped to the
    `interpreter` defaults, and pass-through options (`memory`,
    `strict_capacity`, `use_subprocess`) are copied as given.

    Returns a dict suitable for passing directly into `Interpreter.run`.
    """
    safe = {
        "max_steps": interpreter.max_steps,
        "max_time_s": interpreter.max_time_s,
        "max_output_chars": interpreter.max_output_chars,
        "memory_size": interpreter.memory_size,
    }
    if not settings:
        return safe
    caps = {}
    # coerce and clamp numeric values to the server's safe maximums
    caps["max_steps"] = min(int(settings.get("max_steps", safe["max_steps"])), safe["max_steps"])
    caps["max_time_s"] = min(float(settings.get("max_time_s", safe["max_time_s"])), safe["max_time_s"])
    caps["max_output_chars"] = min(int(settings.get("max_output_chars", safe["max_output_chars"])), safe["max_output_chars"])
    caps["memory_size"] = min(int(settings.get("memory_size", safe["memory_size"])), safe["memory_size"])
    for key in ("memory", "strict_capacity", "use_subprocess"):
        if key in settings:
            caps[key] = settings[key]
    return caps


@app.on_event('startup')
def startup():
    """FastAPI startup event: initialize the database schema."""
    db.init_db()


class RunRequest(BaseModel):
    """Pydantic model for the `/run` request body.

    Fields:
        code: BASIC program text.
        inputs: optional initial variable values, e.g. {"a": 5}.
        settings: optional runtime tunables; capped server-side.
        program_id: optional id to associate this run with a saved program.
    """
    code: str
    inputs: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None
    program_id: Optional[int] = None


@app.post("/run")
def run_code(req: RunRequest):
    """Handle a program execution request.

    A fresh `Interpreter` is built per request and run with the capped
    settings. Completed runs are persisted; any unexpected exception becomes
    a SERVER_ERROR payload so callers always receive the same JSON shape.
    """
    start = time.time()
    try:
        capped = _cap_settings(req.settings or {})
        it = Interpreter()
        result = it.run(req.code, inputs=req.inputs or {}, settings=capped)
    except Exception as e:
        return {
            "output": "",
            "warnings": [],
            "steps": 0,
            "variables": {},
            "memory": {},
            "duration_ms": int((time.time() - start) * 1000),
            "errors": {"code": "SERVER_ERROR", "message": str(e)},
        }
    result["duration_ms"] = int((time.time() - start) * 1000)

    # persist the run (non-fatal; on failure we append a warning)
    try:
        errors = result.get("errors")
        db.save_run(
            req.program_id,
            result.get("steps"),
            result.get("duration_ms"),
            errors.get("code") if errors else None,
            len(result.get("output") or ""),
            result.get("warnings"),
        )
    except Exception as e:
        result.setdefault('warnings', []).append(f"Failed to persist run: {e}")

    return result


class SaveProgramRequest(BaseModel):
    title: str
    code: str


@app.post('/save')
async def save_program(req: SaveProgramRequest):
    try:
        program_id = db.save_program(req.title, req.code)
    except Exception as e:
        return {'error': str(e)}
    return {'program_id': program_id}


@app.get('/programs')
async def list_programs():
    return db.list_programs()


@app.get('/programs/{program_id}')
async def get_program(program_id: int):
    p = db.get_program(program_id)
    if not p:
        return {'error': 'not found'}
    return p


@app.get('/stats')
async def list_stats(program_id: Optional[int] = None):
    return db.list_runs(program_id)
