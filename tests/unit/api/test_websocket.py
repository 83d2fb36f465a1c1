"""Unit tests for the /ws endpoint."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from fakes import EchoTool, ScriptedProvider, text_reply, tool_reply
from upcore_agent.api.auth import sign_token
from upcore_agent.api.routes.websocket import INVALID_FORMAT_MESSAGE, parse_images
from upcore_agent.api.server import create_app
from upcore_agent.application.executor import EMPTY_MESSAGE, RATE_LIMIT_MESSAGE
from upcore_agent.application.factory import AgentFactory
from upcore_agent.application.settings import AgentSettings
from upcore_agent.core.domain.models import ImagePart

SECRET = "x" * 32


def make_client(tmp_path, scripts, **overrides):
    values = {
        "agent_password": "pw",
        "agent_jwt_secret": SECRET,
        "context_dir": tmp_path / "context",
        "turbo_repo_dir": str(tmp_path / "repo"),
        "checkpoint_file": tmp_path / "checkpoint.json",
    }
    values.update(overrides)
    settings = AgentSettings(_env_file=None, **values)
    provider = ScriptedProvider(scripts)
    factory = AgentFactory(settings, llm_provider=provider)
    factory.create_tools = lambda store: [EchoTool()]
    runtime = factory.create_runtime()
    return TestClient(create_app(runtime=runtime)), runtime, provider


def receive_until_terminal(ws):
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["type"] in ("complete", "needs_continue", "error"):
            return frames


class TestParseImages:
    def test_valid(self):
        images = parse_images([{"data": "QUJD", "mediaType": "image/png", "name": "a.png"}])

        assert images == [ImagePart(data="QUJD", media_type="image/png", name="a.png")]

    def test_absent(self):
        assert parse_images(None) == []

    def test_malformed(self):
        assert parse_images("nope") is None
        assert parse_images([{"data": "QUJD"}]) is None
        assert parse_images(["x"]) is None


class TestAgentSocket:
    def test_rejects_missing_token(self, tmp_path):
        client, _, _ = make_client(tmp_path, [])

        with client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws"):
                    pass

        assert exc_info.value.code == 1008

    def test_rejects_forged_token(self, tmp_path):
        client, _, _ = make_client(tmp_path, [])

        with client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect(f"/ws?token={sign_token('z' * 32)}"):
                    pass

        assert exc_info.value.code == 1008

    def test_message_streams_events(self, tmp_path):
        client, _, provider = make_client(
            tmp_path, [tool_reply([("t1", "echo", '{"value": "v"}')]), text_reply("Done")]
        )

        with client, client.websocket_connect(f"/ws?token={sign_token(SECRET)}") as ws:
            ws.send_json({"type": "message", "content": "do it"})
            frames = receive_until_terminal(ws)

        assert [f["type"] for f in frames] == ["tool_start", "tool_done", "text_chunk", "complete"]
        assert frames[1] == {"type": "tool_done", "tool": "echo", "result": "echo:v"}
        assert frames[-1]["usage"] == {"input": 20, "output": 10}
        assert provider.calls[0]["history"][0].text == "do it"

    def test_images_reach_the_model(self, tmp_path):
        client, _, provider = make_client(tmp_path, [text_reply("A chart")])

        with client, client.websocket_connect(f"/ws?token={sign_token(SECRET)}") as ws:
            ws.send_json(
                {
                    "type": "message",
                    "content": "",
                    "images": [{"data": "QUJD", "mediaType": "image/png", "name": "c.png"}],
                }
            )
            receive_until_terminal(ws)

        user_turn = provider.calls[0]["history"][0]
        assert user_turn.parts == (ImagePart(data="QUJD", media_type="image/png", name="c.png"),)

    def test_invalid_frame(self, tmp_path):
        client, _, _ = make_client(tmp_path, [])

        with client, client.websocket_connect(f"/ws?token={sign_token(SECRET)}") as ws:
            ws.send_text("{not json")
            first = ws.receive_json()
            ws.send_json({"type": "message", "content": 42})
            second = ws.receive_json()

        assert first == {"type": "error", "message": INVALID_FORMAT_MESSAGE}
        assert second == {"type": "error", "message": INVALID_FORMAT_MESSAGE}

    def test_empty_message_then_rate_limit(self, tmp_path):
        client, _, provider = make_client(tmp_path, [], message_limit=1)

        with client, client.websocket_connect(f"/ws?token={sign_token(SECRET)}") as ws:
            ws.send_json({"type": "message", "content": "   "})
            first = ws.receive_json()
            ws.send_json({"type": "message", "content": "hello"})
            second = ws.receive_json()

        assert first == {"type": "error", "message": EMPTY_MESSAGE}
        assert second == {"type": "error", "message": RATE_LIMIT_MESSAGE}
        assert provider.calls == []

    def test_session_closed_on_disconnect(self, tmp_path):
        client, runtime, _ = make_client(tmp_path, [])

        with client:
            with client.websocket_connect(f"/ws?token={sign_token(SECRET)}") as ws:
                ws.send_json({"type": "cancel"})

        assert len(runtime.sessions) == 0
