"""Integration tests for the chat completions gateway and session endpoints."""

from __future__ import annotations

import json
import re

from fastapi.testclient import TestClient

from kode_gateway.agent.events.event_types import Done, TextDelta, TextEnd, ToolEnd, ToolStart
from kode_gateway.agent.runtime.local_engine import FALLBACK_REPLY
from kode_gateway.core.container import build_container
from kode_gateway.main import create_app

_SESSION_ID_RE = re.compile(r"^agt_[0-9A-HJKMNP-TV-Z]{26}$")


def _chat(text: str = "hello", **extra) -> dict:
    return {"model": "ignored", "messages": [{"role": "user", "content": text}], **extra}


def _frames(body: str) -> list[str]:
    return [f"{block}\n\n" for block in body.split("\n\n") if block]


def _scripted_client(settings, engine) -> TestClient:
    container = build_container(settings, engine=engine)
    engine.store = container.session_store
    return TestClient(create_app(container))


def test_health_and_models(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        health = client.get("/health")
        assert health.status_code == 200
        assert health.json() == {
            "status": "ok",
            "env": "dev",
            "version": "0.1.0",
            "model": "test-model",
            "llm_enabled": False,
            "sessions": 0,
        }

        models = client.get("/v1/models")
        assert models.status_code == 200
        assert models.json()["data"][0]["id"] == "test-model"


def test_buffered_chat_creates_then_resumes_session(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        first = client.post("/v1/chat/completions", json=_chat())
        assert first.status_code == 200
        session_id = first.headers["X-Session-Id"]
        assert _SESSION_ID_RE.match(session_id)
        body = first.json()
        assert body["object"] == "chat.completion"
        assert body["id"].startswith("chatcmpl-")
        assert body["model"] == "test-model"
        assert body["choices"][0]["message"] == {"role": "assistant", "content": FALLBACK_REPLY}
        assert body["choices"][0]["finish_reason"] == "stop"
        assert body["usage"] == {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}

        by_header = client.post("/v1/chat/completions", json=_chat("again"), headers={"X-Session-Id": session_id})
        assert by_header.status_code == 200
        assert by_header.headers["X-Session-Id"] == session_id

        by_route = client.post(f"/v1/chat/completions/{session_id}", json=_chat("third"))
        assert by_route.status_code == 200
        assert by_route.headers["X-Session-Id"] == session_id

        detail = client.get(f"/v1/sessions/{session_id}")
        assert detail.status_code == 200
        assert detail.json()["turn_count"] == 6
        assert detail.json()["turns"][0]["content"] == "hello"


def test_unknown_session_returns_404(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        for response in (
            client.post("/v1/chat/completions", json=_chat(), headers={"X-Session-Id": "agt_missing"}),
            client.post("/v1/chat/completions", json=_chat(), headers={"X-Kode-Agent-Id": "agt_missing"}),
            client.post("/v1/chat/completions/agt_missing", json=_chat()),
        ):
            assert response.status_code == 404
            assert response.json() == {
                "error": {"message": "Session 'agt_missing' not found", "type": "invalid_request_error"}
            }

        assert client.get("/v1/sessions").json() == []


def test_malformed_requests_return_400(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        empty = client.post("/v1/chat/completions", json={"messages": []})
        assert empty.status_code == 400
        assert empty.json()["error"] == {
            "message": "Messages array is required and must not be empty",
            "type": "invalid_request_error",
        }

        no_user = client.post("/v1/chat/completions", json={"messages": [{"role": "system", "content": "x"}]})
        assert no_user.status_code == 400
        assert no_user.json()["error"]["message"] == "At least one user message is required"

        wrong_shape = client.post("/v1/chat/completions", json={"messages": "hello"})
        assert wrong_shape.status_code == 400
        assert wrong_shape.json()["error"]["type"] == "invalid_request_error"


def test_streaming_chat_emits_chunks_tools_and_done(settings, make_engine) -> None:
    engine = make_engine(
        events=[
            TextDelta("Hel"),
            ToolStart(call_id="call_1", name="bash", state="running"),
            ToolEnd(call_id="call_1", name="bash", state="completed", duration_ms=5),
            TextDelta("lo"),
            TextEnd(),
            Done(),
        ]
    )
    with _scripted_client(settings, engine) as client:
        response = client.post("/v1/chat/completions", json=_chat(stream=True))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-accel-buffering"] == "no"
    session_id = response.headers["x-session-id"]
    assert _SESSION_ID_RE.match(session_id)

    frames = _frames(response.text)
    assert frames[-1] == "data: [DONE]\n\n"
    payloads = [json.loads(frame[len("data: "):]) for frame in frames[:-1]]
    assert [payload.get("event") for payload in payloads] == [None, "tool:start", "tool:end", None, None]
    assert payloads[0]["choices"][0]["delta"] == {"content": "Hel"}
    assert payloads[3]["choices"][0]["delta"] == {"content": "lo"}
    assert payloads[4]["choices"][0]["finish_reason"] == "stop"
    assert len({payloads[0]["id"], payloads[3]["id"], payloads[4]["id"]}) == 1
    assert engine.disposed == [session_id]


def test_engine_failure_returns_500_and_releases(settings, make_engine) -> None:
    engine = make_engine(error=RuntimeError("engine exploded"))
    with _scripted_client(settings, engine) as client:
        response = client.post("/v1/chat/completions", json=_chat())

    assert response.status_code == 500
    assert response.json() == {
        "error": {
            "message": "Internal server error",
            "type": "server_error",
            "details": "engine exploded",
        }
    }
    assert len(engine.disposed) == 1


def test_session_listing_and_delete(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        session_id = client.post("/v1/chat/completions", json=_chat("list me please")).headers["X-Session-Id"]

        listing = client.get("/v1/sessions", params={"limit": 10})
        assert listing.status_code == 200
        items = listing.json()
        assert [item["session_id"] for item in items] == [session_id]
        assert items[0]["title"] == "list me please"
        assert items[0]["turn_count"] == 2

        assert client.delete(f"/v1/sessions/{session_id}").status_code == 204
        assert client.delete(f"/v1/sessions/{session_id}").status_code == 404
        assert client.get(f"/v1/sessions/{session_id}").status_code == 404

        followup = client.post("/v1/chat/completions", json=_chat(), headers={"X-Session-Id": session_id})
        assert followup.status_code == 404


def test_streaming_failure_before_first_frame_returns_500(settings, make_engine) -> None:
    engine = make_engine(events=[], error=RuntimeError("upstream refused connection"))
    with _scripted_client(settings, engine) as client:
        response = client.post("/v1/chat/completions", json=_chat(stream=True))

    assert response.status_code == 500
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {
        "error": {
            "message": "Internal server error",
            "type": "server_error",
            "details": "upstream refused connection",
        }
    }
    assert len(engine.disposed) == 1


def test_aliased_session_id_is_not_resumed(settings) -> None:
    with TestClient(create_app(build_container(settings))) as client:
        session_id = client.post("/v1/chat/completions", json=_chat()).headers["X-Session-Id"]
        alias = f"{session_id[:6]}/{session_id[6:]}!"

        response = client.post("/v1/chat/completions", json=_chat(), headers={"X-Session-Id": alias})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == f"Session '{alias}' not found"
        assert "X-Session-Id" not in response.headers
        assert client.get(f"/v1/sessions/{session_id}").json()["turn_count"] == 2
