# copilot/capture_session.py

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

from copilot.errors import InvalidStateTransition, ScreenShareInactive
from copilot.pipeline import QuestionPipeline
from copilot.state import AnswerPayload, AudioClip, CaptureState, ScreenAnalysisPayload

logger = logging.getLogger(__name__)


class MicrophoneHandle(Protocol):
    def open(self): ...

    def finish(self) -> AudioClip: ...

    def close(self) -> None: ...


class ScreenShareHandle(Protocol):
    @property
    def active(self) -> bool: ...

    def grab(self) -> bytes: ...

    def close(self) -> None: ...


class ScreenAnalysisService(Protocol):
    def analyze(self, png_bytes: bytes) -> ScreenAnalysisPayload: ...


class CaptureListener:
    """Receives capture events. Subclass and override what you need."""

    def capture_state_changed(self, state: CaptureState) -> None:
        pass

    def answer_progress(self, payload: AnswerPayload) -> None:
        pass

    def capture_completed(self, payload) -> None:
        pass

    def capture_failed(self, error: Exception) -> None:
        pass


class CaptureSession:
    """
    State machine for microphone recording and screen capture.

        IDLE -> RECORDING_AUDIO -> PROCESSING -> IDLE
        IDLE -> CAPTURING_SCREEN -> PROCESSING -> IDLE
        any error -> IDLE

    Every operation checks and moves the state synchronously, then returns an
    asyncio.Task for the rest of the work. A request from the wrong state
    raises InvalidStateTransition and changes nothing, so at most one
    capture operation is ever in flight.
    """

    def __init__(
        self,
        pipeline: QuestionPipeline,
        analyzer: ScreenAnalysisService,
        microphone_factory: Callable[[], MicrophoneHandle],
        screen_share: Optional[ScreenShareHandle] = None,
        listener: Optional[CaptureListener] = None,
    ):
        self.pipeline = pipeline
        self.analyzer = analyzer
        self.microphone_factory = microphone_factory
        self.screen_share = screen_share
        self.listener = listener or CaptureListener()
        self.state = CaptureState.IDLE
        self._mic: Optional[MicrophoneHandle] = None
        self._task: Optional[asyncio.Task] = None

    # ---------- helpers ----------

    def _set_state(self, state: CaptureState):
        if state is self.state:
            return
        logger.debug("capture state %s -> %s", self.state.value, state.value)
        self.state = state
        self.listener.capture_state_changed(state)

    def _require(self, expected: CaptureState, operation: str) -> asyncio.AbstractEventLoop:
        loop = asyncio.get_running_loop()
        if self.state is not expected:
            logger.info("Rejected %s while %s", operation, self.state.value)
            raise InvalidStateTransition(operation, self.state)
        return loop

    def _spawn(self, loop: asyncio.AbstractEventLoop, coro: Awaitable) -> asyncio.Task:
        self._task = loop.create_task(coro)
        return self._task

    def _release_microphone(self):
        mic, self._mic = self._mic, None
        if mic is not None:
            mic.close()

    async def _process(self, work: Awaitable):
        """Run the PROCESSING phase; the session is IDLE again on every exit."""
        try:
            payload = await work
        except asyncio.CancelledError:
            self._set_state(CaptureState.IDLE)
            raise
        except Exception as e:
            logger.warning("Capture failed: %s", e)
            self._set_state(CaptureState.IDLE)
            self.listener.capture_failed(e)
            raise
        self._set_state(CaptureState.IDLE)
        self.listener.capture_completed(payload)
        return payload

    # ---------- audio ----------

    def start_recording(self) -> asyncio.Task:
        loop = self._require(CaptureState.IDLE, "start_recording")
        self._set_state(CaptureState.RECORDING_AUDIO)
        return self._spawn(loop, self._acquire_microphone())

    async def _acquire_microphone(self):
        mic = self.microphone_factory()
        opening = asyncio.ensure_future(asyncio.to_thread(mic.open))
        try:
            await asyncio.shield(opening)
        except asyncio.CancelledError:
            # the open() call cannot be interrupted; release once it returns
            opening.add_done_callback(lambda _: mic.close())
            self._set_state(CaptureState.IDLE)
            raise
        except Exception as e:
            mic.close()
            logger.warning("Could not start recording: %s", e)
            self._set_state(CaptureState.IDLE)
            self.listener.capture_failed(e)
            raise

        if self.state is not CaptureState.RECORDING_AUDIO:
            mic.close()
            return
        self._mic = mic
        logger.info("Recording question...")

    def stop_recording(self) -> asyncio.Task:
        loop = self._require(CaptureState.RECORDING_AUDIO, "stop_recording")
        if self._mic is None:
            raise InvalidStateTransition("stop_recording", self.state, "microphone not ready")

        try:
            clip = self._mic.finish()
        except Exception as e:
            logger.warning("Could not finish recording: %s", e)
            self._set_state(CaptureState.IDLE)
            self.listener.capture_failed(e)
            raise
        finally:
            self._release_microphone()

        logger.info("Recording stopped (%.1fs). Processing...", clip.duration_s)
        self._set_state(CaptureState.PROCESSING)
        work = self.pipeline.answer_audio(clip, self.listener.answer_progress)
        return self._spawn(loop, self._process(work))

    def ask(self, text: str) -> asyncio.Task:
        """Answer a typed question, skipping the microphone and transcription."""
        loop = self._require(CaptureState.IDLE, "ask")
        self._set_state(CaptureState.PROCESSING)
        work = self.pipeline.answer(text, self.listener.answer_progress)
        return self._spawn(loop, self._process(work))

    # ---------- screen ----------

    def attach_screen_share(self, share: ScreenShareHandle):
        self.screen_share = share

    def capture_screen(self) -> asyncio.Task:
        loop = self._require(CaptureState.IDLE, "capture_screen")
        if self.screen_share is None or not self.screen_share.active:
            raise ScreenShareInactive(self.state)
        self._set_state(CaptureState.CAPTURING_SCREEN)
        return self._spawn(loop, self._process(self._analyze_screen()))

    async def _analyze_screen(self) -> ScreenAnalysisPayload:
        png = await asyncio.to_thread(self.screen_share.grab)
        self._set_state(CaptureState.PROCESSING)
        return await asyncio.to_thread(self.analyzer.analyze, png)

    # ---------- lifetime ----------

    async def teardown(self):
        """Abort whatever is in flight and release every capture handle."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("In-flight capture ended with %r during teardown", e)
        self._release_microphone()
        if self.screen_share is not None:
            self.screen_share.close()
        self._set_state(CaptureState.IDLE)
