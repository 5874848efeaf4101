# copilot/overlay.py

import asyncio
import logging
from typing import Callable, Optional, Set

from copilot.capture_session import CaptureListener, CaptureSession
from copilot.errors import InvalidStateTransition
from copilot.keyboard import KeyboardSubscription, KeySource, normalize_key
from copilot.state import AnswerPayload, CaptureState, ErrorPayload, OverlayState, Point

logger = logging.getLogger(__name__)

ACTIONS = ("start_recording", "stop_recording", "capture_screen", "toggle_visibility", "quit")

STATE_TITLES = {
    CaptureState.RECORDING_AUDIO: "Recording question...",
    CaptureState.CAPTURING_SCREEN: "Capturing screen...",
    CaptureState.PROCESSING: "Processing...",
}


class OverlaySession(CaptureListener):
    """
    The discreet assistant panel: visibility, position, drag, and keyboard
    shortcuts. Results from the capture session replace whatever is shown
    and always make the panel visible.
    """

    def __init__(
        self,
        capture: CaptureSession,
        keys: KeySource,
        shortcuts: dict,
        position: Point = Point(50, 50),
        on_change: Optional[Callable[[OverlayState], None]] = None,
    ):
        self.capture = capture
        self.capture.listener = self
        self.keys = keys
        self.shortcuts = {}
        for action, key in shortcuts.items():
            if action not in ACTIONS:
                raise ValueError(f"unknown overlay action: {action!r}")
            self.shortcuts[normalize_key(str(key))] = action
        self.on_change = on_change
        self.state = OverlayState(position=position)
        self.closed = asyncio.Event()

        self._subscription: Optional[KeyboardSubscription] = None
        self._drag_offset = (0.0, 0.0)
        self._operations: Set[asyncio.Task] = set()

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def _changed(self):
        if self.on_change is not None:
            self.on_change(self.state)

    def _show(self, content, title: str, reveal: bool = True):
        self.state.content = content
        self.state.title = title
        if reveal:
            self.state.visible = True
        self._changed()

    # ---------- lifetime ----------

    def start(self):
        self._subscription = KeyboardSubscription(self.keys, self.on_keydown).register()
        self.state.visible = True
        self._changed()

    async def stop(self):
        """End the session: abort in-flight work, release handles and key listeners."""
        if not self.active:
            return
        self._subscription.close()
        self._subscription = None
        await self.capture.teardown()
        self.state = OverlayState(visible=False, position=self.state.position)
        self.closed.set()
        logger.info("Overlay session stopped.")

    # ---------- keyboard ----------

    def is_shortcut(self, key: str) -> bool:
        return normalize_key(key) in self.shortcuts

    def on_keydown(self, key: str) -> bool:
        """Dispatch a shortcut. Returns False for keys that are not shortcuts."""
        action = self.shortcuts.get(normalize_key(key))
        if action is None:
            return False
        logger.debug("shortcut %r -> %s", key, action)

        if action == "toggle_visibility":
            self.toggle_visibility()
        elif action == "quit":
            self._track(self.stop())
        elif action == "start_recording":
            self._dispatch(action, self.capture.start_recording)
        elif action == "stop_recording":
            self._dispatch(action, self.capture.stop_recording)
        elif action == "capture_screen":
            self._dispatch(action, self.capture.capture_screen)
        return True

    def ask(self, text: str) -> bool:
        """Answer a typed question. Returns False when it was rejected."""
        return self._dispatch("ask", lambda: self.capture.ask(text))

    def _dispatch(self, action: str, operation) -> bool:
        try:
            task = operation()
        except InvalidStateTransition as e:
            # busy: report it without touching the displayed result
            self.state.title = f"Busy: {e}"
            self._changed()
            return False
        except Exception as e:
            self._show_error(e)
            return False
        self._track(self._follow(task))
        return True

    def _track(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._operations.add(task)
        task.add_done_callback(self._operations.discard)
        return task

    async def _follow(self, task: asyncio.Task):
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise
        except Exception as e:
            self._show_error(e)

    def _show_error(self, error: Exception):
        if self.active:
            logger.debug("showing %r", error)
            self._show(ErrorPayload(message=str(error)), title=f"Error: {type(error).__name__}")

    # ---------- visibility / drag ----------

    def toggle_visibility(self):
        self.state.visible = not self.state.visible
        self._changed()

    def on_mouse_down(self, x: float, y: float, on_handle: bool) -> bool:
        if not on_handle:
            return False
        pos = self.state.position
        self._drag_offset = (x - pos.x, y - pos.y)
        self.state.dragging = True
        self._changed()
        return True

    def on_mouse_move(self, x: float, y: float):
        if not self.state.dragging:
            return
        dx, dy = self._drag_offset
        self.state.position = Point(x - dx, y - dy)
        self._changed()

    def on_mouse_up(self):
        if self.state.dragging:
            self.state.dragging = False
            self._changed()

    # ---------- capture events ----------

    def capture_state_changed(self, state: CaptureState):
        if not self.active:
            return
        title = STATE_TITLES.get(state)
        if title:
            self.state.title = title
            self._changed()

    def answer_progress(self, payload: AnswerPayload):
        if not self.active:
            return
        # only the first chunk of an answer reveals a hidden panel
        shown = self.state.content
        continuing = (
            shown is not None
            and shown.kind == "answer"
            and not shown.complete
            and shown.question is payload.question
        )
        self._show(payload, title=f"Answering ({payload.question.label.value})...", reveal=not continuing)

    def capture_completed(self, payload):
        if not self.active:
            return
        if payload.kind == "screen_analysis":
            self._show(payload, title="Screen Analysis")
        else:
            self._show(payload, title=f"Answer ({payload.question.label.value})")
