import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from writing_rater import analyzer as analyzer_mod
from writing_rater.config import Settings
from writing_rater.llm_client import ClaudeGateway
from writing_rater.main import create_app

SETTINGS = Settings(api_key="test-key", environment="test")

REQUEST = {
    "text": "This is a short test paragraph for scoring.",
    "writingType": "General Writing",
    "criteria": ["grammar", "clarity"],
}

MODEL_JSON = {
    "grammar": {"score": 8, "feedback": "Good"},
    "clarity": {"score": 7, "feedback": "OK"},
    "overall": {"score": 7, "feedback": "Solid"},
    "writing_info": {
        "type": "General Writing",
        "word_count": 8,
        "character_count": 43,
        "analyzed_on": "1/1/2025",
        "sample_text": "This is a short test paragraph for scoring.",
    },
}


def _envelope(text):
    return {"id": "msg_1", "type": "message", "content": [{"type": "text", "text": text}]}


def _client(handler=None, settings=SETTINGS):
    gateway = None
    if handler is not None:
        gateway = ClaudeGateway.from_settings(settings, transport=httpx.MockTransport(handler))
    return TestClient(create_app(settings=settings, gateway=gateway))


def test_fenced_reply_returns_result_with_meta():
    reply = "```json\n" + json.dumps(MODEL_JSON) + "\n```"
    prompts = []

    def handler(request):
        prompts.append(json.loads(request.content)["messages"][0]["content"])
        return httpx.Response(200, json=_envelope(reply))

    resp = _client(handler).post("/analyze", json=REQUEST)

    assert resp.status_code == 200
    body = resp.json()
    assert body["overall"]["score"] == 7
    assert body["grammar"] == {"score": 8, "feedback": "Good"}
    assert body["_meta"]["service"] == "writing-rater"
    assert body["_meta"]["version"] == "1.0.0"
    assert body["_meta"]["processed_at"]
    assert len(prompts) == 1
    assert REQUEST["text"] in prompts[0]


def test_prose_wrapped_reply_is_recovered():
    reply = "Here you go:\n" + json.dumps(MODEL_JSON) + "\nThanks!"
    resp = _client(lambda request: httpx.Response(200, json=_envelope(reply))).post("/analyze", json=REQUEST)
    assert resp.status_code == 200
    assert resp.json()["clarity"]["score"] == 7


def _fail_if_called(request):
    raise AssertionError("provider must not be called")


@pytest.mark.parametrize("overrides, code", [
    ({"text": ""}, "MISSING_FIELDS"),
    ({"text": "123456789"}, "TEXT_TOO_SHORT"),
    ({"text": "x" * 10_001}, "TEXT_TOO_LONG"),
    ({"criteria": None}, "MISSING_FIELDS"),
    ({"criteria": "grammar"}, "MISSING_FIELDS"),
    ({"writingType": 5}, "MISSING_FIELDS"),
])
def test_bad_input_is_400_and_never_calls_provider(overrides, code):
    payload = dict(REQUEST, **overrides)
    resp = _client(_fail_if_called).post("/analyze", json=payload)
    assert resp.status_code == 400
    assert resp.json()["code"] == code
    assert resp.json()["error"]


def test_invalid_json_body_is_missing_fields():
    resp = _client(_fail_if_called).post(
        "/analyze", content=b"{not json", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_FIELDS"


def test_upstream_timeout_is_408_without_partial_body():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    resp = _client(handler).post("/analyze", json=REQUEST)
    assert resp.status_code == 408
    assert resp.json() == {"error": "Analysis timed out. Please try again.", "code": "TIMEOUT"}


def test_deadline_expiry_is_408():
    settings = Settings(api_key="test-key", timeout_seconds=0.05)

    async def handler(request):
        await asyncio.sleep(2)
        return httpx.Response(200, json=_envelope(json.dumps(MODEL_JSON)))

    resp = _client(handler, settings=settings).post("/analyze", json=REQUEST)
    assert resp.status_code == 408
    assert resp.json()["code"] == "TIMEOUT"


def test_upstream_429_passes_through():
    resp = _client(lambda request: httpx.Response(429)).post("/analyze", json=REQUEST)
    assert resp.status_code == 429
    assert resp.json()["code"] == "RATE_LIMITED"


@pytest.mark.parametrize("handler, code", [
    (lambda request: httpx.Response(503, text="overloaded"), "API_ERROR"),
    (lambda request: httpx.Response(200, json={"content": []}), "INVALID_RESPONSE"),
    (lambda request: httpx.Response(200, json=_envelope("I cannot help with that.")), "FORMAT_ERROR"),
    (lambda request: httpx.Response(200, json=_envelope('{"overall": {"score": 7}}')), "PARSE_ERROR"),
])
def test_upstream_failures_are_500(handler, code):
    resp = _client(handler).post("/analyze", json=REQUEST)
    assert resp.status_code == 500
    assert resp.json()["code"] == code


def test_error_body_never_leaks_key_or_prompt():
    resp = _client(lambda request: httpx.Response(500, text="boom")).post("/analyze", json=REQUEST)
    raw = resp.text
    assert "test-key" not in raw
    assert REQUEST["text"] not in raw


def test_missing_credential_fails_fast():
    resp = _client(settings=Settings(api_key=None)).post("/analyze", json=REQUEST)
    assert resp.status_code == 500
    assert resp.json()["code"] == "SERVICE_ERROR"


def test_missing_credential_still_validates_input_first():
    resp = _client(settings=Settings(api_key=None)).post("/analyze", json=dict(REQUEST, text="short"))
    assert resp.status_code == 400
    assert resp.json()["code"] == "TEXT_TOO_SHORT"


def test_unexpected_exception_is_server_error(monkeypatch):
    def broken_prompt(*args, **kwargs):
        raise RuntimeError("template exploded")

    monkeypatch.setattr(analyzer_mod, "build_prompt", broken_prompt)
    resp = _client(_fail_if_called).post("/analyze", json=REQUEST)
    assert resp.status_code == 500
    assert resp.json() == {"error": "Analysis failed. Please try again.", "code": "SERVER_ERROR"}


def test_options_preflight_is_permissive():
    resp = _client().options("/analyze")
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]
    assert "Content-Type" in resp.headers["access-control-allow-headers"]


@pytest.mark.parametrize("requested_method", ["POST", "PUT"])
def test_browser_preflight_with_custom_headers_is_200(requested_method):
    resp = _client().options(
        "/analyze",
        headers={
            "Origin": "http://localhost:3000",
            "Access-Control-Request-Method": requested_method,
            "Access-Control-Request-Headers": "content-type, x-session-id",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "x-session-id" in resp.headers["access-control-allow-headers"]


def test_cors_headers_on_results_and_errors():
    ok = _client(lambda request: httpx.Response(200, json=_envelope(json.dumps(MODEL_JSON)))).post(
        "/analyze", json=REQUEST, headers={"Origin": "http://localhost:3000"}
    )
    assert ok.status_code == 200
    assert ok.headers["access-control-allow-origin"] == "*"

    bad = _client(_fail_if_called).post("/analyze", json=dict(REQUEST, text="short"))
    assert bad.status_code == 400
    assert bad.headers["access-control-allow-origin"] == "*"


def test_non_finite_score_is_json_parse_error():
    reply = '{"overall":{"score":NaN,"feedback":"?"},"writing_info":{}}'
    resp = _client(lambda request: httpx.Response(200, json=_envelope(reply))).post("/analyze", json=REQUEST)
    assert resp.status_code == 500
    assert resp.headers["content-type"].startswith("application/json")
    assert resp.json()["code"] == "PARSE_ERROR"


@pytest.mark.parametrize("method", ["get", "put", "delete"])
def test_other_methods_are_405(method):
    resp = getattr(_client(), method)("/analyze")
    assert resp.status_code == 405
    assert resp.json()["code"] == "METHOD_NOT_ALLOWED"


def test_health_reports_configuration():
    resp = _client().get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "healthy"
    assert body["service"] == "writing-rater"
    assert body["environment"] == "test"
    assert body["api_key_configured"] is True

    assert _client(settings=Settings()).get("/health").json()["api_key_configured"] is False


def test_assemble_result_does_not_mutate_input():
    data = {"overall": {"score": 5, "feedback": "x"}, "writing_info": {}}
    out = analyzer_mod.assemble_result(data)
    assert "_meta" in out
    assert "_meta" not in data
