"""Concurrency-focused tests exercising the API's per-request isolation."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from fastapi.testclient import TestClient
from backend.app.main import app

client = TestClient(app)


def _post_run(payload):
    r = client.post("/run", json=payload)
    return r.status_code, r.json()


def test_concurrent_runs_isolated():
    # each job carries its own caps; none may leak into another request
    jobs = [
        {"code": "10 a=a+1\n20 goto 10", "settings": {"max_steps": 50}},
        {"code": '10 print "xxxxxxxx"\n20 goto 10', "settings": {"max_output_chars": 10}},
        {"code": "10 b=b+1\n20 print b", "inputs": {"b": 41}, "settings": {"max_steps": 1000}},
    ]

    results = []
    with ThreadPoolExecutor(max_workers=3) as ex:
        futures = {ex.submit(_post_run, j): i for i, j in enumerate(jobs)}
        for fut in as_completed(futures):
            results.append((futures[fut], fut.result()))

    assert len(results) == 3
    by_job = dict(results)

    assert all(status == 200 for status, _ in by_job.values())
    for _, body in by_job.values():
        assert "output" in body and "warnings" in body and "errors" in body

    assert by_job[0][1]["errors"]["code"] == "STEP_LIMIT"
    assert by_job[0][1]["variables"] == {"a": 25}
    assert by_job[1][1]["errors"]["code"] == "OUTPUT_LIMIT"
    assert by_job[2][1]["errors"] is None
    assert by_job[2][1]["output"] == "42\n"
