"""
Settings loading, transcript persistence, the Ollama client, screen analysis
parsing, and audio preparation for Whisper.

Run with: pytest tests/test_support.py -v
"""
import json

import numpy as np
import pytest

from copilot.config import DEFAULTS, load_settings
from copilot.errors import ScreenAnalysisFailed
from copilot.llm.ollama_client import OllamaClient, OllamaStream
from copilot.screen_analysis import ScreenAnalyzer, _extract_json
from copilot.state import AudioClip, Conversation
from copilot.stt_whisper import prepare_audio
from transcripts.transcript_writer import pair_turns, write_session_transcript


# ---------- config ----------

def test_missing_settings_file_gives_defaults(tmp_path):
    cfg = load_settings(str(tmp_path / "nope.yaml"))
    assert cfg == DEFAULTS
    cfg["audio"]["rate"] = 1
    assert DEFAULTS["audio"]["rate"] == 16000


def test_settings_file_overrides_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "llm:\n  model: mistral\noverlay:\n  shortcuts:\n    quit: x\n",
        encoding="utf-8",
    )
    cfg = load_settings(str(path))
    assert cfg["llm"]["model"] == "mistral"
    assert cfg["llm"]["url"] == DEFAULTS["llm"]["url"]
    assert cfg["overlay"]["shortcuts"]["quit"] == "x"
    assert cfg["overlay"]["shortcuts"]["start_recording"] == "r"


def test_settings_must_be_a_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(str(path))


# ---------- transcripts ----------

def test_pair_turns_matches_answers_to_questions():
    conv = Conversation()
    conv.append("user", "Q1")
    conv.append("model", "A1")
    conv.append("user", "Q2")
    assert pair_turns(conv) == [("Q1", "A1"), ("Q2", None)]


def test_conversation_rejects_unknown_roles():
    with pytest.raises(ValueError):
        Conversation().append("system", "hi")


def test_write_session_transcript(tmp_path):
    conv = Conversation()
    conv.append("user", "Explain the CAP theorem")
    conv.append("model", "*Intro*: pick two of three.")
    out = write_session_transcript(conv, base_dir=str(tmp_path))

    text = open(out, encoding="utf-8").read()
    assert text.startswith("# Q&A Transcript\n\n")
    assert "## Q1. Explain the CAP theorem\n\n*Intro*: pick two of three.\n" in text
    assert text.rstrip().endswith("---")


# ---------- ollama ----------

class FakeResponse:
    def __init__(self, lines=(), body=None):
        self.lines = list(lines)
        self.body = body
        self.closed = False

    def iter_lines(self, decode_unicode=False):
        for line in self.lines:
            if self.closed:
                return
            yield line

    def raise_for_status(self):
        pass

    def json(self):
        return self.body

    def close(self):
        self.closed = True


def ndjson(*objs):
    return [json.dumps(o) for o in objs]


def test_ollama_stream_yields_chunks_until_done():
    resp = FakeResponse(ndjson(
        {"message": {"content": "Hel"}, "done": False},
        {"message": {"content": ""}, "done": False},
        {"message": {"content": "lo"}, "done": False},
        {"message": {"content": ""}, "done": True},
    ))
    assert list(OllamaStream(resp)) == ["Hel", "lo"]
    assert resp.closed


def test_ollama_stream_close_stops_iteration():
    resp = FakeResponse(ndjson(
        {"message": {"content": "a"}, "done": False},
        {"message": {"content": "b"}, "done": False},
    ))
    stream = OllamaStream(resp)
    assert next(stream) == "a"
    stream.close()
    assert resp.closed
    assert list(stream) == []


def test_ollama_stream_surfaces_server_errors():
    resp = FakeResponse(ndjson({"error": "model not found"}))
    with pytest.raises(RuntimeError, match="model not found"):
        list(OllamaStream(resp))
    assert resp.closed


class RecordingSession:
    def __init__(self, resp):
        self.resp = resp
        self.calls = []

    def post(self, url, json=None, timeout=None, stream=False):
        self.calls.append({"url": url, "json": json, "stream": stream})
        return self.resp


def test_ollama_generate_atomic_and_streaming_payloads():
    client = OllamaClient(url="http://ollama/api/chat", model="llama3.1")

    client.session = RecordingSession(FakeResponse(body={"message": {"content": "answer"}}))
    assert client.generate("prompt text") == "answer"
    call = client.session.calls[0]
    assert call["json"]["stream"] is False
    assert call["json"]["messages"] == [{"role": "user", "content": "prompt text"}]

    client.session = RecordingSession(FakeResponse(ndjson({"message": {"content": "x"}, "done": True})))
    stream = client.generate("prompt text", streaming=True, system="be brief")
    assert isinstance(stream, OllamaStream)
    assert list(stream) == ["x"]
    call = client.session.calls[0]
    assert call["stream"] is True
    assert call["json"]["messages"][0] == {"role": "system", "content": "be brief"}


def test_ollama_client_from_settings():
    client = OllamaClient.from_settings(DEFAULTS["llm"])
    assert client.model == "llama3.1"
    assert client.timeout == 120.0


# ---------- screen analysis ----------

class FakeChatClient:
    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    def chat(self, messages, model=None, **extra):
        self.calls.append((messages, model, extra))
        return self.reply


def test_screen_analyzer_sends_image_and_parses_reply():
    client = FakeChatClient(json.dumps({"analysis": "Two-sum.", "suggestion": "Hash map."}))
    payload = ScreenAnalyzer(client, "llava").analyze(b"png-bytes")

    assert payload.kind == "screen_analysis"
    assert (payload.analysis, payload.suggestion) == ("Two-sum.", "Hash map.")
    messages, model, extra = client.calls[0]
    assert model == "llava"
    assert extra == {"format": "json"}
    assert messages[0]["images"] == ["cG5nLWJ5dGVz"]


def test_extract_json_tolerates_surrounding_text():
    assert _extract_json('Sure! {"analysis": "a", "suggestion": "b"} Hope it helps') == {
        "analysis": "a",
        "suggestion": "b",
    }


@pytest.mark.parametrize("reply", ["no json here", '{"analysis": "", "suggestion": ""}'])
def test_screen_analyzer_rejects_empty_replies(reply):
    with pytest.raises(ScreenAnalysisFailed):
        ScreenAnalyzer(FakeChatClient(reply), "llava").analyze(b"x")


# ---------- audio preparation ----------

def test_prepare_audio_downmixes_normalizes_and_resamples():
    stereo = np.tile(np.array([1000, 3000], dtype=np.int16), 48000)  # 1s at 48k
    audio = prepare_audio(AudioClip(samples=stereo, rate=48000, channels=2))

    assert audio.dtype == np.float32
    assert abs(audio.size - 16000) <= 1
    assert np.max(np.abs(audio)) <= 1.2


def test_prepare_audio_keeps_16k_mono_length():
    mono = (np.sin(np.linspace(0, 100, 16000)) * 8000).astype(np.int16)
    audio = prepare_audio(AudioClip(samples=mono, rate=16000, channels=1))
    assert audio.size == 16000
    assert np.isclose(np.max(np.abs(audio)), 1.0, atol=1e-3)


def test_prepare_audio_empty_clip():
    clip = AudioClip(samples=np.array([], dtype=np.int16), rate=16000, channels=1)
    assert prepare_audio(clip).size == 0
    assert clip.duration_s == 0.0
