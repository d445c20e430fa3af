import asyncio
import errno
import socket
import ssl
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from alt_text_models import HttpStatusError
from error_classifier import classify_fetch, classify_http_status, classify_model


URL = 'https://news.example.com/story'
LOCAL = 'http://127.0.0.1:1234/v1'
REMOTE = 'http://gpu.example.net:1234/v1'


class FakeResponse:
    def __init__(self, status_code, text=''):
        self.status_code = status_code
        self.text = text


def test_http_status_table():
    expected = {
        404: 'not_found',
        410: 'not_found',
        401: 'blocked',
        403: 'blocked',
        429: 'blocked',
        451: 'blocked',
        408: 'timeout',
        504: 'timeout',
        524: 'timeout',
        400: 'http_error',
        500: 'http_error',
        302: 'unknown',
    }
    for status, kind in expected.items():
        info = classify_http_status(status, URL)
        assert info.kind == kind, status
        assert info.code == f'HTTP_{status}'
        assert info.message and info.suggestion
        assert info.target == URL


def test_fetch_http_status_error_uses_status_table():
    assert classify_fetch(HttpStatusError(404, URL), URL).kind == 'not_found'


def test_fetch_network_errors():
    refused = ConnectionRefusedError(errno.ECONNREFUSED, 'Connection refused')
    assert classify_fetch(refused, URL).kind == 'connection_refused'
    assert classify_fetch(httpx.ConnectError('[Errno 111] Connection refused'), URL).kind == 'connection_refused'
    assert classify_fetch(Exception('connect ECONNREFUSED 10.0.0.1:443'), URL).kind == 'connection_refused'
    assert classify_fetch(socket.gaierror(-2, 'Name or service not known'), URL).kind == 'dns_error'
    assert classify_fetch(Exception('getaddrinfo ENOTFOUND nope.invalid'), URL).kind == 'dns_error'
    assert classify_fetch(httpx.ReadTimeout('timed out'), URL).kind == 'timeout'
    assert classify_fetch(asyncio.TimeoutError(), URL).kind == 'timeout'
    assert classify_fetch(ssl.SSLCertVerificationError('certificate verify failed'), URL).kind == 'ssl_error'
    assert classify_fetch(ConnectionResetError(), URL).kind == 'blocked'


def test_fetch_walks_the_cause_chain():
    try:
        try:
            raise ConnectionRefusedError(errno.ECONNREFUSED, 'Connection refused')
        except ConnectionRefusedError as inner:
            raise RuntimeError('request failed') from inner
    except RuntimeError as outer:
        info = classify_fetch(outer, URL)
    assert info.kind == 'connection_refused'
    assert info.code == 'ECONNREFUSED'


def test_fetch_unknown_truncates_raw_message():
    info = classify_fetch(ValueError('x' * 500), URL)
    assert info.kind == 'unknown'
    assert info.message == 'x' * 200


def test_model_no_models_loaded():
    info = classify_model(None, LOCAL, body_text='{"error": "No models loaded. Please load a model."}')
    assert info.kind == 'no_model'
    assert 'LM Studio' in info.suggestion
    resp = FakeResponse(400, 'No models loaded')
    assert classify_model(Exception('Bad request'), LOCAL, response=resp).kind == 'no_model'


def test_model_refused_depends_on_host():
    refused = ConnectionRefusedError(errno.ECONNREFUSED, 'Connection refused')
    assert classify_model(refused, LOCAL).kind == 'not_running'
    assert classify_model(refused, 'http://localhost:1234/v1').kind == 'not_running'
    assert classify_model(refused, REMOTE).kind == 'connection_refused'
    assert classify_model(socket.gaierror(-2, 'Name or service not known'), REMOTE).kind == 'connection_refused'
    assert classify_model(ConnectionResetError(), REMOTE).kind == 'connection_refused'


def test_model_status_codes():
    boom = Exception('boom')
    assert classify_model(boom, REMOTE, response=FakeResponse(401)).kind == 'auth_failed'
    assert classify_model(boom, REMOTE, response=FakeResponse(403)).kind == 'auth_failed'
    assert classify_model(boom, REMOTE, response=FakeResponse(404)).kind == 'endpoint_not_found'
    assert classify_model(boom, REMOTE, response=FakeResponse(429)).kind == 'rate_limited'
    assert classify_model(boom, REMOTE, response=FakeResponse(503)).kind == 'server_error'


def test_model_status_read_from_the_error_itself():
    class StatusError(Exception):
        status_code = 401

    assert classify_model(StatusError('unauthorized'), REMOTE).kind == 'auth_failed'


def test_model_timeout_and_unknown():
    assert classify_model(asyncio.TimeoutError(), LOCAL).kind == 'timeout'
    info = classify_model(Exception('weird'), None)
    assert info.kind == 'unknown'
    assert info.message == 'weird'


def test_to_dict_omits_absent_fields():
    d = classify_model(Exception('weird'), None).to_dict()
    assert d['kind'] == 'unknown'
    assert 'target' not in d and 'code' not in d
    f = classify_http_status(404, URL).to_dict()
    assert f == {
        'kind': 'not_found',
        'code': 'HTTP_404',
        'message': f['message'],
        'suggestion': f['suggestion'],
        'target': URL,
    }
