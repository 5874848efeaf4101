# copilot/screen_capture.py

import logging

import mss
import mss.tools
from mss.exception import ScreenShotError

from copilot.errors import CaptureHandleAcquisitionFailed

logger = logging.getLogger(__name__)


class ScreenShare:
    """Long-lived screen grabber, started once before capture begins."""

    def __init__(self, monitor: int = 0):
        # mss monitor 0 is the union of all displays
        self.monitor = monitor
        self._sct = None

    @property
    def active(self) -> bool:
        return self._sct is not None

    def start(self) -> "ScreenShare":
        try:
            self._sct = mss.mss()
            logger.info("Screen sharing started (monitor %d).", self.monitor)
        except ScreenShotError as e:
            raise CaptureHandleAcquisitionFailed(f"Screen capture unavailable: {e}") from e
        return self

    def grab(self) -> bytes:
        """Grab a single frame as PNG bytes."""
        if self._sct is None:
            raise CaptureHandleAcquisitionFailed("Screen sharing is not active")
        try:
            shot = self._sct.grab(self._sct.monitors[self.monitor])
        except ScreenShotError as e:
            raise CaptureHandleAcquisitionFailed(f"Screenshot failed: {e}") from e
        return mss.tools.to_png(shot.rgb, shot.size)

    def close(self):
        if self._sct is not None:
            self._sct.close()
            self._sct = None
            logger.info("Screen sharing stopped.")
