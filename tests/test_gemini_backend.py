import base64
import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from google.genai import errors

from notes_annotator.backends import gemini_backend
from notes_annotator.backends.gemini_backend import (
    GeminiTeacher,
    build_history,
    create_client,
    generate_speech,
    generate_study_response,
    generate_visual_aid,
    resolve_api_key,
)
from notes_annotator.core.prompts import REFUSAL, SYSTEM_INSTRUCTION


def msg(role, *parts):
    return {"id": role, "role": role, "parts": list(parts), "timestamp": ""}


def inline_response(data, mime_type="image/png"):
    part = SimpleNamespace(inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None)
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[part]))])


@pytest.fixture
def client():
    c = MagicMock()
    c.models.generate_content.return_value = SimpleNamespace(
        text=json.dumps({"finalAnswer": "= 50 N", "conceptContent": "", "hasConcept": False})
    )
    return c


def test_history_drops_empty_parts_and_turns():
    history = [
        msg("model", {"text": "Hello"}),
        msg("user", {"text": "   "}),
        msg("user", {"inline_data": {"mime_type": "image/png", "data": "AAAA"}}, {"text": ""}),
    ]
    contents = build_history(history)
    assert [c.role for c in contents] == ["model", "user"]
    assert contents[0].parts[0].text == "Hello"
    assert contents[1].parts[0].inline_data.data == b"\x00\x00\x00"
    assert len(contents[1].parts) == 1


def test_history_is_windowed():
    history = [msg("user", {"text": f"q{i}"}) for i in range(15)]
    contents = build_history(history)
    assert len(contents) == 10
    assert contents[0].parts[0].text == "q5"


def test_study_request_shape(client):
    history = [msg("model", {"text": "Hello"})]
    image = {"mime_type": "image/jpeg", "data": base64.b64encode(b"jpg").decode()}

    result = generate_study_response(client, "What is force?", history, image)

    assert json.loads(result["text"])["finalAnswer"] == "= 50 N"
    assert "visual_prompt" not in result
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-3-pro-preview"
    current = kwargs["contents"][-1]
    assert current.role == "user"
    assert current.parts[0].inline_data.data == b"jpg"
    assert current.parts[1].text == "What is force?"
    config = kwargs["config"]
    assert config.system_instruction == SYSTEM_INSTRUCTION
    assert config.temperature == 0.1
    assert config.response_mime_type == "application/json"


def test_visual_prompt_is_surfaced(client):
    client.models.generate_content.return_value = SimpleNamespace(
        text=json.dumps({"finalAnswer": "Cell", "conceptContent": "", "hasConcept": False, "visualPrompt": "a cell"})
    )
    assert generate_study_response(client, "Draw a cell", [])["visual_prompt"] == "a cell"


def test_nothing_to_send(client):
    with pytest.raises(ValueError):
        generate_study_response(client, "  ", [])
    client.models.generate_content.assert_not_called()


@pytest.mark.parametrize(
    "error",
    [
        Exception("403 PERMISSION_DENIED"),
        Exception("Response was blocked by safety filters"),
        errors.APIError(403, {"error": {"code": 403, "message": "denied", "status": "PERMISSION_DENIED"}}),
    ],
)
def test_blocked_requests_become_refusal(client, error):
    client.models.generate_content.side_effect = error
    result = generate_study_response(client, "Tell me a joke", [])
    notes = json.loads(result["text"])
    assert notes["finalAnswer"] == REFUSAL
    assert notes["hasConcept"] is False


def test_other_errors_propagate(client):
    client.models.generate_content.side_effect = ConnectionError("network down")
    with pytest.raises(ConnectionError):
        generate_study_response(client, "What is force?", [])


def test_speech_returns_raw_audio(client):
    client.models.generate_content.return_value = inline_response(b"\x01\x00\x02\x00", "audio/pcm")
    assert generate_speech(client, "= 50 N") == b"\x01\x00\x02\x00"
    kwargs = client.models.generate_content.call_args.kwargs
    assert kwargs["model"] == "gemini-2.5-flash-preview-tts"
    assert "= 50 N" in kwargs["contents"]
    assert kwargs["config"].response_modalities == ["AUDIO"]


def test_speech_accepts_base64_payload(client):
    client.models.generate_content.return_value = inline_response(base64.b64encode(b"\x01\x00").decode())
    assert generate_speech(client, "hi") == b"\x01\x00"


def test_speech_failure_is_none(client):
    client.models.generate_content.side_effect = RuntimeError("quota")
    assert generate_speech(client, "hi") is None
    client.models.generate_content.side_effect = None
    client.models.generate_content.return_value = SimpleNamespace(candidates=[])
    assert generate_speech(client, "hi") is None


def test_visual_aid(client):
    client.models.generate_content.return_value = inline_response(b"png-bytes", "image/png")
    aid = generate_visual_aid(client, "a cell")
    assert aid == {"mime_type": "image/png", "data": base64.b64encode(b"png-bytes").decode()}
    assert "a cell" in client.models.generate_content.call_args.kwargs["contents"]


def test_visual_aid_failure_is_none(client):
    client.models.generate_content.side_effect = RuntimeError("no image")
    assert generate_visual_aid(client, "a cell") is None


def test_api_key_lookup(monkeypatch):
    for name in ("GEMINI_API_KEY", "API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    assert resolve_api_key() == ""
    with pytest.raises(RuntimeError):
        create_client()
    monkeypatch.setenv("API_KEY", "second")
    assert resolve_api_key() == "second"
    monkeypatch.setenv("GEMINI_API_KEY", "first")
    assert resolve_api_key() == "first"
    assert resolve_api_key("explicit") == "explicit"


def test_teacher_creates_client_lazily(monkeypatch, client):
    created = []
    monkeypatch.setattr(gemini_backend, "create_client", lambda key: created.append(key) or client)
    teacher = GeminiTeacher(api_key="k")
    assert created == []
    teacher.generate_study_response("What is force?", [])
    teacher.generate_speech("hi")
    assert created == ["k"]
