# copilot/pipeline.py

import asyncio
import logging
from typing import Callable, Optional, Protocol

from copilot.answer_llm import ResponseGenerator
from copilot.classifier import make_question
from copilot.errors import TranscriptionEmpty
from copilot.router import route
from copilot.state import AnswerPayload, AudioClip, Conversation, PromptContext

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AnswerPayload], None]


class TranscriptionService(Protocol):
    def transcribe(self, clip: AudioClip): ...


class QuestionPipeline:
    """
    transcription -> classification -> routing -> streamed generation,
    for one candidate profile (resume + job description).
    """

    def __init__(
        self,
        transcriber: TranscriptionService,
        generator: ResponseGenerator,
        resume: str,
        job_description: str,
        conversation: Optional[Conversation] = None,
    ):
        self.transcriber = transcriber
        self.generator = generator
        self.resume = resume
        self.job_description = job_description
        self.conversation = conversation if conversation is not None else Conversation()

    async def transcribe(self, clip: AudioClip) -> str:
        result = await asyncio.to_thread(self.transcriber.transcribe, clip)
        text = (result.text or "").strip()
        if not text:
            raise TranscriptionEmpty()
        return text

    def build_context(self, question: str) -> PromptContext:
        return PromptContext(
            resume=self.resume,
            job_description=self.job_description,
            history=self.conversation.snapshot(),
            question=question,
        )

    async def answer(self, text: str, on_progress: Optional[ProgressCallback] = None) -> AnswerPayload:
        question = make_question(text, self.job_description)
        template_id = route(question.label)
        logger.info("Q: %s [label=%s, template=%s]", question.raw_text, question.label.value, template_id.value)

        context = self.build_context(question.raw_text)
        async with self.generator.stream(template_id, context) as stream:
            async for _ in stream:
                if on_progress is not None:
                    on_progress(AnswerPayload(
                        question=question,
                        template_id=template_id,
                        text=stream.text,
                        complete=False,
                    ))
            answer = stream.text

        # history only records answered questions
        self.conversation.append("user", question.raw_text)
        self.conversation.append("model", answer)
        return AnswerPayload(question=question, template_id=template_id, text=answer)

    async def answer_audio(self, clip: AudioClip, on_progress: Optional[ProgressCallback] = None) -> AnswerPayload:
        text = await self.transcribe(clip)
        return await self.answer(text, on_progress)
