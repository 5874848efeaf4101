"""In-memory stand-ins for the microphone, screen, and model services."""
import threading

import numpy as np

from copilot.answer_llm import ResponseGenerator
from copilot.capture_session import CaptureSession
from copilot.errors import CaptureHandleAcquisitionFailed
from copilot.pipeline import QuestionPipeline
from copilot.state import AudioClip, ScreenAnalysisPayload
from copilot.stt_whisper import Transcript

RESUME = "Backend engineer. 5 years of Python, Postgres and Kafka."
JD = "Senior Backend Engineer working on payments APIs."


class FakeChunkStream:
    """
    Yields the given chunks. With block_after=n it blocks before chunk n+1
    until close() is called.
    """

    def __init__(self, chunks, block_after=None):
        self._chunks = list(chunks)
        self._pos = 0
        self.block_after = block_after
        self.closed = False
        self.delivered = 0
        self._unblock = threading.Event()
        self.waiting = threading.Event()

    def __iter__(self):
        return self

    def __next__(self):
        if self.block_after is not None and self._pos >= self.block_after:
            self.waiting.set()
            self._unblock.wait(timeout=5)
        if self.closed or self._pos >= len(self._chunks):
            raise StopIteration
        chunk = self._chunks[self._pos]
        self._pos += 1
        self.delivered += 1
        return chunk

    def close(self):
        self.closed = True
        self._unblock.set()


class FakeGenerationService:
    def __init__(self, chunks=("I would ", "use two ", "pointers."), block_after=None, error=None):
        self.chunks = list(chunks)
        self.block_after = block_after
        self.error = error
        self.prompts = []
        self.streams = []

    def generate(self, prompt, streaming=False):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if not streaming:
            return "".join(self.chunks)
        stream = FakeChunkStream(self.chunks, block_after=self.block_after)
        self.streams.append(stream)
        return stream


class FakeTranscriber:
    def __init__(self, text="Write a function to reverse a linked list"):
        self.text = text
        self.clips = []

    def transcribe(self, clip):
        self.clips.append(clip)
        return Transcript(text=self.text)


class FakeMicrophone:
    def __init__(self, fail=False):
        self.fail = fail
        self.opened = False
        self.closed = False

    def open(self):
        if self.fail:
            raise CaptureHandleAcquisitionFailed("Microphone unavailable: permission denied")
        self.opened = True
        return self

    def finish(self):
        return AudioClip(samples=np.zeros(1600, dtype=np.int16), rate=16000, channels=1)

    def close(self):
        self.closed = True


class FakeScreenShare:
    def __init__(self, active=True):
        self.active = active
        self.grabs = 0

    def grab(self):
        self.grabs += 1
        return b"\x89PNG fake"

    def close(self):
        self.active = False


class FakeAnalyzer:
    def __init__(self, error=None):
        self.error = error
        self.images = []

    def analyze(self, png_bytes):
        self.images.append(png_bytes)
        if self.error is not None:
            raise self.error
        return ScreenAnalysisPayload(analysis="A two-sum problem.", suggestion="Use a hash map.")


class FakeKeySource:
    def __init__(self):
        self.listeners = []

    def add_listener(self, callback):
        self.listeners.append(callback)

    def remove_listener(self, callback):
        self.listeners.remove(callback)

    def press(self, key):
        for cb in list(self.listeners):
            cb(key)


def make_session(
    service=None,
    transcriber=None,
    analyzer=None,
    screen_share=None,
    mic_fail=False,
):
    """CaptureSession wired to fakes. Returns (session, microphones list)."""
    microphones = []

    def microphone_factory():
        mic = FakeMicrophone(fail=mic_fail)
        microphones.append(mic)
        return mic

    pipeline = QuestionPipeline(
        transcriber=transcriber or FakeTranscriber(),
        generator=ResponseGenerator(service or FakeGenerationService()),
        resume=RESUME,
        job_description=JD,
    )
    session = CaptureSession(
        pipeline=pipeline,
        analyzer=analyzer or FakeAnalyzer(),
        microphone_factory=microphone_factory,
        screen_share=screen_share,
    )
    return session, microphones
