# copilot/state.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Literal, Optional, Tuple, Union

import numpy as np


class Label(str, Enum):
    CODING = "coding"
    ML = "ml"
    SYSTEM_DESIGN = "system_design"
    PROCESS_DOMAIN = "process_domain"
    BEHAVIORAL = "behavioral"
    OTHER = "other"


class TemplateId(str, Enum):
    TECHNICAL = "technical"
    STRUCTURED_PROFESSIONAL = "structured-professional"


class CaptureState(str, Enum):
    IDLE = "idle"
    RECORDING_AUDIO = "recording_audio"
    CAPTURING_SCREEN = "capturing_screen"
    PROCESSING = "processing"


@dataclass(frozen=True)
class Question:
    """A classified interviewer question. Only the classifier creates these."""
    raw_text: str
    label: Label
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class ConversationTurn:
    role: Literal["user", "model"]
    content: str


class Conversation:
    """Append-only interview history; insertion order is chronological."""

    def __init__(self):
        self._turns: List[ConversationTurn] = []

    def append(self, role: str, content: str) -> ConversationTurn:
        if role not in ("user", "model"):
            raise ValueError(f"unknown role: {role!r}")
        turn = ConversationTurn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def snapshot(self) -> Tuple[ConversationTurn, ...]:
        return tuple(self._turns)

    def __len__(self):
        return len(self._turns)

    def __iter__(self):
        return iter(self.snapshot())


@dataclass(frozen=True)
class PromptContext:
    resume: str
    job_description: str
    history: Tuple[ConversationTurn, ...]
    question: str


@dataclass(frozen=True)
class AudioClip:
    """Finalized microphone recording: interleaved int16 PCM."""
    samples: np.ndarray
    rate: int
    channels: int

    @property
    def duration_s(self) -> float:
        if self.rate <= 0 or self.channels <= 0:
            return 0.0
        return self.samples.size / float(self.rate * self.channels)


# ---------- Overlay payloads (tagged by `kind`) ----------

@dataclass(frozen=True)
class AnswerPayload:
    question: Question
    template_id: TemplateId
    text: str
    complete: bool = True
    kind: Literal["answer"] = "answer"


@dataclass(frozen=True)
class ScreenAnalysisPayload:
    analysis: str
    suggestion: str
    kind: Literal["screen_analysis"] = "screen_analysis"


@dataclass(frozen=True)
class ErrorPayload:
    message: str
    kind: Literal["error"] = "error"


Payload = Union[AnswerPayload, ScreenAnalysisPayload, ErrorPayload]


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass
class OverlayState:
    visible: bool = True
    position: Point = field(default_factory=lambda: Point(50, 50))
    dragging: bool = False
    title: str = "Ready"
    content: Optional[Payload] = None
