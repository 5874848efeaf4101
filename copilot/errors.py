# copilot/errors.py


class CopilotError(Exception):
    """Base class for failures surfaced to the overlay."""


class TranscriptionEmpty(CopilotError):
    def __init__(self, message: str = "Failed to transcribe audio."):
        super().__init__(message)


class GenerationEmpty(CopilotError):
    def __init__(self, message: str = "no answer produced"):
        super().__init__(message)


class InvalidStateTransition(CopilotError):
    """A capture operation was requested from the wrong state."""

    def __init__(self, operation: str, state, reason: str | None = None):
        self.operation = operation
        self.state = state
        msg = f"{operation} rejected while {getattr(state, 'value', state)}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ScreenShareInactive(InvalidStateTransition):
    def __init__(self, state):
        super().__init__("capture_screen", state, "screen sharing is not active")


class CaptureHandleAcquisitionFailed(CopilotError):
    """Microphone / screen permission denied or device unavailable."""


class ScreenAnalysisFailed(CopilotError):
    pass
