from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict
from flask import Flask, request, jsonify, Response

import logging
import threading
import time
from collections import deque, defaultdict

from services.api.orchestrator import ReportService
from services.calculation.engine import compute, result_to_dict
from services.calculation.inputs import parse_inputs
from services.config.env import configure_logging, get_database_config, get_rate_limit_config
from services.errors import ServiceError, ValidationError
from services.leads.recorder import LeadRecorder
from services.scenarios.store import ScenarioStore
from services.storage.database import init_db, make_engine, make_session_factory

logger = logging.getLogger(__name__)

app = Flask(__name__)

# Configuration helpers (overridable via app.config in tests)

def _get_database_url() -> str:
    return app.config.get('DATABASE_URL') or get_database_config().url


def _get_rate_limit() -> tuple[int, float]:
    cfg = get_rate_limit_config()
    n = app.config.get('RATE_LIMIT_N')
    w = app.config.get('RATE_LIMIT_WINDOW_SEC')
    return int(cfg.max_requests if n is None else n), float(cfg.window_sec if w is None else w)


@dataclass
class Backend:
    store: ScenarioStore
    recorder: LeadRecorder
    reports: ReportService


_backends: Dict[str, Backend] = {}
_backends_lock = threading.Lock()


def _backend() -> Backend:
    url = _get_database_url()
    with _backends_lock:
        b = _backends.get(url)
        if b is None:
            engine = make_engine(url)
            init_db(engine)
            sessions = make_session_factory(engine)
            store = ScenarioStore(sessions)
            recorder = LeadRecorder(sessions)
            b = Backend(store=store, recorder=recorder, reports=ReportService(store, recorder))
            _backends[url] = b
    return b


# Unbounded deques: _check_rate_limit only appends below N and prunes by window
_recent: dict[str, deque[float]] = defaultdict(deque)


def _client_ip() -> str:
    xff = request.headers.get('X-Forwarded-For')
    if xff:
        return xff.split(',')[0].strip()
    return request.remote_addr or 'anon'


def _check_rate_limit(ip: str):
    # Allow if rate limiting disabled or N <= 0
    n, window = _get_rate_limit()
    if n <= 0:
        return None
    now = time.time()
    dq = _recent[ip]
    # Drop old entries outside window
    while dq and now - dq[0] > window:
        dq.popleft()
    if len(dq) >= n:
        retry = max(0.0, window - (now - dq[0]))
        resp = jsonify({'success': False, 'error': 'rate_limited', 'message': 'Too many report requests'})
        resp.status_code = 429
        resp.headers['Retry-After'] = f"{retry:.2f}"
        return resp
    dq.append(now)
    return None


@app.before_request
def _rate_limit_reports():
    # Only the lead-capture endpoint is rate limited
    if request.method == 'POST' and request.path == '/api/reports/generate':
        return _check_rate_limit(_client_ip())
    return None


@app.errorhandler(ServiceError)
def _service_error(e: ServiceError):
    resp = jsonify(e.to_dict())
    resp.status_code = e.status_code
    if e.retryable:
        resp.headers['Retry-After'] = '5'
    return resp


@app.errorhandler(Exception)
def _unexpected_error(e: Exception):
    # Never echo internal exception text to callers
    code = getattr(e, 'code', None)
    if isinstance(code, int) and 400 <= code < 500:
        return jsonify({'success': False, 'error': 'bad_request', 'message': getattr(e, 'description', 'Bad request')}), code
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({'success': False, 'error': 'internal_error', 'message': 'Internal server error'}), 500


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        raise ValidationError('request body must be a JSON object', reason='invalid_body')
    return payload


@app.post('/api/simulate')
def simulate():
    inputs = parse_inputs(_json_body())
    results = compute(inputs)
    return jsonify({'success': True, 'data': {'inputs': inputs.to_dict(), 'results': result_to_dict(results)}})


@app.get('/api/scenarios')
def list_scenarios():
    scenarios = _backend().store.list()
    return jsonify({'success': True, 'data': [s.to_dict() for s in scenarios]})


@app.post('/api/scenarios')
def create_scenario():
    # Only inputs are read; any results in the body are ignored and recomputed
    inputs = parse_inputs(_json_body())
    scenario = _backend().store.create(inputs)
    return jsonify({'success': True, 'data': {'id': scenario.id, 'message': 'Scenario saved successfully'}})


@app.get('/api/scenarios/<sid>')
def get_scenario(sid: str):
    scenario = _backend().store.get(sid)
    return jsonify({'success': True, 'data': scenario.to_dict()})


@app.delete('/api/scenarios/<sid>')
def delete_scenario(sid: str):
    _backend().store.delete(sid)
    return jsonify({'success': True, 'message': 'Scenario deleted successfully'})


@app.post('/api/reports/generate')
def generate_report():
    payload = _json_body()
    run = _backend().reports.generate(payload.get('scenario_id'), payload.get('email'))
    if not run.delivered:
        status = 404 if run.reason == 'scenario_not_found' else 400
        return jsonify({'success': False, 'error': run.reason, 'message': run.message}), status
    return Response(run.content, mimetype='application/pdf', headers={
        'Content-Disposition': f'attachment; filename="{run.filename}"'
    })


if __name__ == '__main__':
    configure_logging()
    app.run(host='0.0.0.0', port=8000)
