"""API integration smoke tests using FastAPI TestClient."""

from fastapi.testclient import TestClient
from backend.app.main import app

client = TestClient(app)


def test_ping():
	# Basic run endpoint smoke test
	r = client.post('/run', json={'code': '10 print 1', 'inputs': {}})
	assert r.status_code == 200
	assert r.json()['output'] == '1\n'


def test_run_requires_code():
	r = client.post('/run', json={'inputs': {}})
	assert r.status_code == 422


def test_run_reports_program_errors():
	r = client.post('/run', json={'code': '10 goto 77'})
	assert r.status_code == 200
	body = r.json()
	assert body['errors']['code'] == 'UNKNOWN_LINE'
	assert body['errors']['line'] == 10
	assert 'duration_ms' in body


def test_missing_program_returns_error():
	r = client.get('/programs/424242')
	assert r.status_code == 200
	assert r.json() == {'error': 'not found'}


def test_run_handler_is_sync():
	# blocking interpreter work goes to the threadpool, not the event loop
	import inspect
	from backend.app import main
	assert not inspect.iscoroutinefunction(main.run_code)
