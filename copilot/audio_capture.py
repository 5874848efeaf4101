# copilot/audio_capture.py

import logging
import threading
from typing import List, Optional

import numpy as np
import pyaudio

from copilot.errors import CaptureHandleAcquisitionFailed
from copilot.state import AudioClip

logger = logging.getLogger(__name__)


class MicrophoneCapture:
    """
    One recording's worth of microphone access.

    open() acquires the device and starts buffering int16 frames from the
    PortAudio callback thread; finish() stops the stream and returns the
    clip; close() releases PyAudio. close() is idempotent and safe on every
    exit path.
    """

    def __init__(self, audio_cfg: dict):
        self.rate = int(audio_cfg["rate"])
        self.channels = int(audio_cfg["channels"])
        chunk_ms = int(audio_cfg["chunk_ms"])
        self.frames_per_buffer = int(self.rate * chunk_ms / 1000)
        device = audio_cfg.get("input_device")
        self.device_index = int(device) if device is not None else None

        self._pa: Optional[pyaudio.PyAudio] = None
        self._stream = None
        self._frames: List[np.ndarray] = []
        self._lock = threading.Lock()

    def _on_audio(self, in_data, frame_count, time_info, status):
        with self._lock:
            self._frames.append(np.frombuffer(in_data, dtype=np.int16))
        return (None, pyaudio.paContinue)

    def open(self) -> "MicrophoneCapture":
        self._pa = pyaudio.PyAudio()
        logger.info("Opening input device %s at %d Hz...", self.device_index, self.rate)
        try:
            self._stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=self.channels,
                rate=self.rate,
                input=True,
                input_device_index=self.device_index,
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=self._on_audio,
            )
            self._stream.start_stream()
        except (OSError, ValueError) as e:
            self.close()
            raise CaptureHandleAcquisitionFailed(f"Microphone unavailable: {e}") from e
        return self

    def finish(self) -> AudioClip:
        """Stop buffering and return everything recorded so far."""
        if self._stream is not None and self._stream.is_active():
            self._stream.stop_stream()
        with self._lock:
            samples = np.concatenate(self._frames) if self._frames else np.array([], dtype=np.int16)
            self._frames = []
        return AudioClip(samples=samples, rate=self.rate, channels=self.channels)

    def close(self):
        if self._stream is not None:
            try:
                if self._stream.is_active():
                    self._stream.stop_stream()
            finally:
                self._stream.close()
                self._stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
            logger.info("Audio stream closed.")


def list_input_devices() -> List[dict]:
    """Input-capable devices as reported by PortAudio."""
    pa = pyaudio.PyAudio()
    try:
        devices = []
        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if int(info.get("maxInputChannels", 0)) > 0:
                devices.append(info)
        return devices
    finally:
        pa.terminate()
