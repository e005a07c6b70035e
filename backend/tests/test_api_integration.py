import pytest
from fastapi.testclient import TestClient

from backend.app.main import app


@pytest.fixture
def client():
    # the autouse temp-DB fixture has already pointed the app at a fresh file
    with TestClient(app) as c:
        yield c


def test_save_and_run_and_stats(client):
    save_resp = client.post('/save', json={'title': 't1', 'code': '10 print "hello"'})
    assert save_resp.status_code == 200
    data = save_resp.json()
    assert 'program_id' in data

    programs_resp = client.get('/programs')
    assert programs_resp.status_code == 200
    assert isinstance(programs_resp.json(), list)

    run_resp = client.post('/run', json={'code': '10 print "hi"', 'inputs': {}})
    assert run_resp.status_code == 200
    rdata = run_resp.json()
    assert rdata['output'] == 'hi\n'

    stats_resp = client.get('/stats')
    assert stats_resp.status_code == 200
    runs = stats_resp.json()
    assert isinstance(runs, list)
    assert runs[0]['status'] == 'ok'
    assert runs[0]['output_chars'] == 3


def test_failed_run_is_recorded_with_error_code(client):
    client.post('/run', json={'code': '10 a=1/0'})
    runs = client.get('/stats').json()
    assert runs[0]['status'] == 'error'
    assert runs[0]['error_code'] == 'DIVISION_BY_ZERO'


def test_run_warnings_are_persisted(client):
    client.post('/run', json={'code': '10 gosub 20\n20 end'})
    runs = client.get('/stats').json()
    assert any('unreturned gosub' in w for w in runs[0]['warnings'])
