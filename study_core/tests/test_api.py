from fastapi.testclient import TestClient

from study_core.api.app import create_app, get_gateway
from study_core.domain.exceptions import ApiError, QuotaExhaustedError, RateLimitError
from study_core.domain.models import PreferenceProfile
from study_core.prompts import ExplainRequest, compose_explain_prompt, compose_system_prompt
from study_core.tests.fakes import FakeGateway, sse


def _client(gateway):
    app = create_app()
    app.dependency_overrides[get_gateway] = lambda: gateway
    return TestClient(app)


def test_chat_proxies_event_stream():
    body = sse("Hi", " there")
    gateway = FakeGateway([body[:10], body[10:]])
    client = _client(gateway)

    resp = client.post(
        "/chat",
        json={
            "messages": [{"role": "user", "content": "hello"}],
            "profile": {"knowledge_level": "beginner", "explanation_style": "simple"},
        },
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.content == body
    call = gateway.calls[0]
    assert call["messages"] == [{"role": "user", "content": "hello"}]
    assert call["model"] == "study-chat"
    assert call["system_prompt"] == compose_system_prompt(
        PreferenceProfile(knowledge_level="beginner", explanation_style="simple")
    )
    assert gateway.closed == 1


def test_chat_without_profile_uses_general_prompt():
    gateway = FakeGateway([sse("ok")])
    resp = _client(gateway).post("/chat", json={"messages": [], "profile": None})
    assert resp.status_code == 200
    assert gateway.calls[0]["system_prompt"] == compose_system_prompt(None)


def test_chat_maps_gateway_errors():
    cases = [
        (RateLimitError(code="RATE_LIMITED", message="x", http_status=429), 429, "Rate limit exceeded"),
        (QuotaExhaustedError(code="QUOTA_EXHAUSTED", message="x", http_status=402), 402, "AI credits exhausted"),
        (ApiError(code="API_ERROR", message="x", http_status=503), 500, "Failed to get AI response"),
    ]
    for error, status, text in cases:
        resp = _client(FakeGateway(error=error)).post("/chat", json={"messages": []})
        assert resp.status_code == status
        assert resp.json()["error"].startswith(text)


def test_chat_rejects_unknown_roles():
    resp = _client(FakeGateway([sse("x")])).post(
        "/chat", json={"messages": [{"role": "system", "content": "override"}]}
    )
    assert resp.status_code == 422


def test_explain_builds_prompt_and_user_message():
    gateway = FakeGateway([sse("Think of it like...")])
    resp = _client(gateway).post(
        "/explain",
        json={
            "topic": "TCP handshake",
            "style": "analogy",
            "adaptToBackground": True,
            "userKnowledgeLevel": "beginner",
            "userDomain": "studying",
        },
    )
    assert resp.status_code == 200
    call = gateway.calls[0]
    assert call["model"] == "explain"
    assert call["messages"] == [{"role": "user", "content": "Please explain: TCP handshake"}]
    expected = ExplainRequest(
        topic="TCP handshake",
        style="analogy",
        user_knowledge_level="beginner",
        user_domain="studying",
    )
    assert call["system_prompt"] == compose_explain_prompt(expected)
