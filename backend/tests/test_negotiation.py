import json

import httpx
import pytest

import negotiation

REQUEST = {
    'carModel': 'Mahindra Thar',
    'rentalHours': 6,
    'initialPrice': 200,
    'minNegotiablePrice': 160,
    'maxNegotiablePrice': 200,
    'userInput': 'Can you do 150 per hour?',
}


def gemini_reply(text):
    return {'candidates': [{'content': {'parts': [{'text': text}]}}]}


class FakeClient:
    """Stands in for httpx.Client; answers every POST with the prepared result."""

    calls = []

    def __init__(self, result, **kwargs):
        self.result = result
        self.kwargs = kwargs

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def post(self, url, params=None, json=None):
        FakeClient.calls.append({'url': url, 'params': params, 'json': json, 'timeout': self.kwargs.get('timeout')})
        if isinstance(self.result, Exception):
            raise self.result
        status, payload = self.result
        return httpx.Response(status, json=payload, request=httpx.Request('POST', url))


@pytest.fixture
def gemini(monkeypatch):
    FakeClient.calls = []

    def install(result):
        monkeypatch.setattr(negotiation.httpx, 'Client', lambda **kwargs: FakeClient(result, **kwargs))
        return FakeClient.calls
    return install


def test_negotiation_returns_structured_offer(client, gemini):
    answer = {'response': 'I can offer 170 per hour.', 'negotiatedPrice': 170, 'isFinalOffer': False}
    calls = gemini((200, gemini_reply(json.dumps(answer))))

    resp = client.post('/api/negotiate', json=REQUEST)
    assert resp.status_code == 200
    assert resp.get_json() == {'response': 'I can offer 170 per hour.', 'negotiatedPrice': 170.0,
                               'isFinalOffer': False}

    call = calls[0]
    assert call['params'] == {'key': 'test-gemini-key'}
    prompt = call['json']['contents'][0]['parts'][0]['text']
    assert 'Car Model: Mahindra Thar' in prompt
    assert 'Minimum Acceptable Hourly Price: 160' in prompt
    assert 'User Input: Can you do 150 per hour?' in prompt
    assert call['json']['generationConfig']['responseMimeType'] == 'application/json'


def test_timeout_becomes_apology(client, gemini):
    gemini(httpx.ReadTimeout('timed out'))
    resp = client.post('/api/negotiate', json=REQUEST)
    assert resp.status_code == 502
    assert resp.get_json()['message'] == negotiation.APOLOGY


def test_provider_error_becomes_apology(client, gemini):
    gemini((503, {'error': {'message': 'overloaded'}}))
    resp = client.post('/api/negotiate', json=REQUEST)
    assert resp.status_code == 502
    assert resp.get_json()['message'] == negotiation.APOLOGY


@pytest.mark.parametrize('text', [
    'I think 170 is fair',
    json.dumps({'response': 'Deal', 'negotiatedPrice': 'lots'}),
])
def test_unusable_answer_becomes_apology(client, gemini, text):
    gemini((200, gemini_reply(text)))
    resp = client.post('/api/negotiate', json=REQUEST)
    assert resp.status_code == 502


def test_missing_api_key_becomes_apology(client, app, monkeypatch, gemini):
    calls = gemini((200, gemini_reply('{}')))
    monkeypatch.setitem(app.config, 'GEMINI_API_KEY', None)
    resp = client.post('/api/negotiate', json=REQUEST)
    assert resp.status_code == 502
    assert calls == []


def test_invalid_request_is_400(client, gemini):
    calls = gemini((200, gemini_reply('{}')))
    resp = client.post('/api/negotiate', json={**REQUEST, 'userInput': ''})
    assert resp.status_code == 400
    assert 'userInput' in resp.get_json()['errors']
    assert calls == []
