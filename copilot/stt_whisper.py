# copilot/stt_whisper.py

import logging
import os
from dataclasses import dataclass

import numpy as np
from scipy.signal import resample_poly

from copilot.state import AudioClip

# Avoid OpenMP runtime clashes
os.environ.setdefault("KMP_DUPLICATE_LIB_OK", "TRUE")
os.environ.setdefault("OMP_NUM_THREADS", "1")

logger = logging.getLogger(__name__)

WHISPER_RATE = 16000


@dataclass(frozen=True)
class Transcript:
    text: str


def _to_mono_int16(x: np.ndarray, channels: int = 1) -> np.ndarray:
    """
    Ensure mono int16. PyAudio gives 1-D interleaved samples; for multi-channel
    input de-interleave and average the channels.
    """
    if channels <= 1:
        return x
    usable = len(x) - (len(x) % channels)  # drop a trailing partial frame
    frames = x[:usable].reshape(-1, channels)
    return frames.mean(axis=1).astype(np.int16)


def _normalize_to_float32(mono_int16: np.ndarray) -> np.ndarray:
    f = mono_int16.astype(np.float32)
    peak = np.max(np.abs(f)) if f.size else 0.0
    if peak > 0:
        f /= peak  # peak normalize to [-1, 1]
    return f


def _resample_to_16k(x_float: np.ndarray, input_rate: int) -> np.ndarray:
    if input_rate == WHISPER_RATE:
        return x_float
    g = np.gcd(int(input_rate), WHISPER_RATE)
    return resample_poly(x_float, WHISPER_RATE // g, int(input_rate) // g)


def prepare_audio(clip: AudioClip) -> np.ndarray:
    """Downmix, normalize and resample a clip into what Whisper expects."""
    mono = _to_mono_int16(clip.samples, channels=clip.channels)
    f32 = _normalize_to_float32(mono)
    if f32.size == 0:
        return f32
    return _resample_to_16k(f32, clip.rate).astype(np.float32)


class WhisperTranscriber:
    def __init__(self, stt_cfg: dict):
        from faster_whisper import WhisperModel

        self.cfg = stt_cfg
        logger.info(
            "Loading Whisper model '%s' (compute=%s)...",
            stt_cfg["model"], stt_cfg.get("compute_type", "int8"),
        )
        self.model = WhisperModel(stt_cfg["model"], compute_type=stt_cfg.get("compute_type", "int8"))

    def transcribe(self, clip: AudioClip) -> Transcript:
        audio = prepare_audio(clip)
        if audio.size == 0:
            return Transcript(text="")

        segments, _ = self.model.transcribe(
            audio,
            beam_size=int(self.cfg.get("beam_size", 1)),
            temperature=float(self.cfg.get("temperature", 0.0)),
            vad_filter=False,
            language=self.cfg.get("language", "en"),
        )
        text = "".join(s.text for s in segments).strip()
        logger.info("Transcribed %.1fs of audio into %d chars", clip.duration_s, len(text))
        return Transcript(text=text)
