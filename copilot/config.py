# copilot/config.py

import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)

HERE = os.path.dirname(os.path.abspath(__file__))
DEFAULT_SETTINGS_PATH = os.path.join(HERE, "..", "config", "settings.yaml")

DEFAULTS = {
    "audio": {
        "rate": 16000,
        "channels": 1,
        "chunk_ms": 100,
        "input_device": None,
    },
    "stt": {
        "model": "small.en",
        "compute_type": "int8",
        "beam_size": 1,
        "temperature": 0.0,
        "language": "en",
    },
    "llm": {
        "url": "http://localhost:11434/api/chat",
        "model": "llama3.1",
        "vision_model": "llava",
        "timeout_s": 120,
    },
    "overlay": {
        "position": {"x": 50, "y": 50},
        "shortcuts": {
            "start_recording": "r",
            "stop_recording": "s",
            "capture_screen": "c",
            "toggle_visibility": "shift+s",
            "quit": "q",
        },
    },
    "profile": {
        "resume_path": "data/resume.md",
        "jd_path": "data/current_jd.md",
    },
    "transcripts": {
        "base_dir": "data/sessions",
    },
    "logging": {
        "level": "INFO",
    },
}


def _merge(base: dict, override: dict) -> dict:
    out = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> dict:
    """Load settings.yaml on top of DEFAULTS. A missing file means defaults."""
    if not os.path.exists(path):
        logger.info("No settings file at %s, using defaults.", path)
        return copy.deepcopy(DEFAULTS)

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of sections")
    return _merge(DEFAULTS, data)
