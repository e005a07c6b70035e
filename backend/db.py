import json
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

# Allow overriding the DB file used by the application (useful for tests)
DB_PATH = Path(
    os.environ.get('TINYBASIC_DB_PATH') or Path(__file__).parent / 'tinybasic.db'
)


def _db_path() -> Path:
    # re-read the environment so tests can point at a temp file after import
    override = os.environ.get('TINYBASIC_DB_PATH')
    return Path(override) if override else DB_PATH


def get_conn():
    """Return a new sqlite3 connection configured to return rows as dict-like objects.

    We create a fresh connection per-call. For the small scale of this project
    this simple approach is fine.
    """
    conn = sqlite3.connect(str(_db_path()))
    conn.row_factory = sqlite3.Row
    return conn


def init_db():
    """Ensure the database file and required tables exist.

    This is idempotent and safe to call at application startup.
    """
    _db_path().parent.mkdir(parents=True, exist_ok=True)
    conn = get_conn()
    cur = conn.cursor()
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Programs (
      program_id INTEGER PRIMARY KEY,
      title TEXT NOT NULL,
      code_text TEXT NOT NULL,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    cur.execute('''
    CREATE TABLE IF NOT EXISTS Runs (
      run_id INTEGER PRIMARY KEY,
      program_id INTEGER NULL,
      steps INTEGER,
      duration_ms INTEGER,
      status TEXT NOT NULL,
      error_code TEXT NULL,
      output_chars INTEGER,
      warnings TEXT,
      created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')
    conn.commit()
    conn.close()


def save_program(title: str, code_text: str) -> int:
    """Persist a program and return the new program_id."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'INSERT INTO Programs (title, code_text) VALUES (?, ?)',
        (title, code_text),
    )
    program_id = cur.lastrowid
    conn.commit()
    conn.close()
    return program_id


def list_programs() -> List[Dict[str, Any]]:
    """Return saved programs (id, title, created_at), newest first."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT program_id, title, created_at FROM Programs '
        'ORDER BY created_at DESC, program_id DESC'
    )
    rows = cur.fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_program(program_id: int) -> Optional[Dict[str, Any]]:
    """Fetch a single program by id, returning None if not found."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        'SELECT program_id, title, code_text, created_at FROM Programs '
        'WHERE program_id = ?',
        (program_id,),
    )
    row = cur.fetchone()
    conn.close()
    return dict(row) if row else None


def save_run(
    program_id: Optional[int],
    steps: Optional[int],
    duration_ms: Optional[int],
    error_code: Optional[str] = None,
    output_chars: Optional[int] = None,
    warnings: Optional[List[str]] = None,
) -> int:
    """Persist a run row and return its run_id.

    `status` is derived from `error_code`: "ok" when None, "error" otherwise.
    Callers should treat this operation as non-fatal: if saving fails, the
    API still returns the interpreter result.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO Runs (
            program_id, steps, duration_ms, status, error_code,
            output_chars, warnings
        ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            program_id,
            steps,
            duration_ms,
            "ok" if error_code is None else "error",
            error_code,
            output_chars,
            json.dumps(warnings or []),
        ),
    )
    run_id = cur.lastrowid
    conn.commit()
    conn.close()
    return run_id


def list_runs(program_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """List run rows, optionally filtering by program_id.

    Each returned dict has parsed `warnings` as a Python list.
    """
    conn = get_conn()
    cur = conn.cursor()
    columns = (
        "run_id, program_id, steps, duration_ms, status, error_code,"
        " output_chars, warnings, created_at"
    )
    if program_id:
        cur.execute(
            f"SELECT {columns} FROM Runs WHERE program_id = ? ORDER BY created_at DESC, run_id DESC",
            (program_id,),
        )
    else:
        cur.execute(f"SELECT {columns} FROM Runs ORDER BY created_at DESC, run_id DESC")
    rows = cur.fetchall()
    conn.close()
    out = []
    for r in rows:
        d = dict(r)
        try:
            d['warnings'] = json.loads(d.get('warnings') or '[]')
        except ValueError:
            # tolerate corrupt JSON in the DB by returning an empty list
            d['warnings'] = []
        out.append(d)
    return out
