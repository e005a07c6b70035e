"""Shared fixtures: keep every test run on its own throwaway database."""

import pytest

from backend import db
from backend.tinybasic.hooks import BufferedOutput
from backend.tinybasic.interpreter import Interpreter


@pytest.fixture(autouse=True)
def _temp_db(tmp_path, monkeypatch):
    monkeypatch.setenv("TINYBASIC_DB_PATH", str(tmp_path / "tinybasic_test.db"))
    db.init_db()


def _execute(code, max_steps=10000, **kwargs):
    out = BufferedOutput()
    it = Interpreter(out, **kwargs)
    it.init(code)
    steps = 0
    while not it.finished:
        it.step()
        steps += 1
        assert steps < max_steps, "program did not terminate"
    return it, out.text


@pytest.fixture
def execute():
    """Step a program to completion on a fresh interpreter; returns (it, output)."""
    return _execute
