# copilot/answer_llm.py

import asyncio
import logging
from typing import Callable, Iterable, Optional, Protocol, Union

from copilot.errors import GenerationEmpty
from copilot.prompts import LIVE_ANSWER_BODY, TEMPLATES, format_history
from copilot.state import PromptContext, TemplateId

logger = logging.getLogger(__name__)

_DONE = object()


class ChunkStream(Protocol):
    """Iterable of text chunks whose close() aborts the underlying call."""

    def __iter__(self): ...

    def close(self) -> None: ...


class GenerationService(Protocol):
    def generate(self, prompt: str, streaming: bool = False) -> Union[str, ChunkStream]: ...


class AnswerStream:
    """
    Lazy, finite, single-use async sequence of answer chunks.

    The generation call is not made until the first chunk is requested.
    aclose() (or leaving an `async with` block, or cancelling the consuming
    task) closes the chunk source and no further chunks are delivered.
    """

    def __init__(self, open_source: Callable[[], Iterable[str]]):
        self._open_source = open_source
        self._source: Optional[Iterable[str]] = None
        self._iter = None
        self._pending: Optional[asyncio.Future] = None
        self._started = False
        self._closed = False
        self._parts = []

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self):
        if self._started:
            raise RuntimeError("AnswerStream can only be iterated once")
        self._started = True
        return self

    async def _in_thread(self, fn, *args):
        # shielded so a cancelled consumer still sees when the worker returns
        self._pending = asyncio.ensure_future(asyncio.to_thread(fn, *args))
        return await asyncio.shield(self._pending)

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        try:
            if self._iter is None:
                self._source = await self._in_thread(self._open_source)
                if self._closed:
                    self._close_source()
                    raise StopAsyncIteration
                self._iter = iter(self._source)

            while True:
                chunk = await self._in_thread(next, self._iter, _DONE)
                if self._closed:
                    raise StopAsyncIteration
                if chunk is _DONE:
                    break
                if chunk:
                    self._parts.append(chunk)
                    return chunk
        except BaseException:
            # cancellation or collaborator failure: abort the in-flight call
            await self.aclose()
            raise

        await self.aclose()
        if not self.text.strip():
            raise GenerationEmpty()
        raise StopAsyncIteration

    async def collect(self) -> str:
        async for _ in self:
            pass
        return self.text

    def _close_source(self):
        pending = self._pending
        in_flight = pending is not None and not pending.done()
        if self._source is None:
            if in_flight:
                # still opening: close whatever the open call returns
                pending.add_done_callback(_close_opened)
            return

        close = getattr(self._source, "close", None)
        if close is None:
            return
        try:
            close()
        except ValueError:
            # a generator cannot be closed while next() runs on a worker thread
            if not in_flight:
                raise
            logger.debug("Chunk source busy, closing it once the pending read returns")
            pending.add_done_callback(lambda _: close())

    async def aclose(self):
        if self._closed:
            return
        self._closed = True
        self._close_source()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False


def _close_opened(fut: asyncio.Future):
    if fut.cancelled() or fut.exception() is not None:
        return
    close = getattr(fut.result(), "close", None)
    if close is not None:
        close()


class ResponseGenerator:
    def __init__(self, service: GenerationService):
        self.service = service

    def render_prompt(self, template_id: TemplateId, context: PromptContext) -> str:
        instructions = TEMPLATES[TemplateId(template_id)]
        body = LIVE_ANSWER_BODY.format(
            resume=context.resume,
            job_description=context.job_description,
            history=format_history(context.history),
            question=context.question,
        )
        return instructions.strip() + "\n" + body

    async def answer(self, template_id: TemplateId, context: PromptContext) -> str:
        prompt = self.render_prompt(template_id, context)
        logger.debug("Sending to LLM. template=%s, q=%r", template_id, context.question)
        text = await asyncio.to_thread(self.service.generate, prompt, False)
        logger.debug("LLM returned %d chars", len(text or ""))
        if not text or not text.strip():
            raise GenerationEmpty()
        return text

    def stream(self, template_id: TemplateId, context: PromptContext) -> AnswerStream:
        prompt = self.render_prompt(template_id, context)
        return AnswerStream(lambda: self.service.generate(prompt, True))

    async def generate(self, template_id: TemplateId, context: PromptContext, mode: str = "atomic"):
        """Atomic mode returns the answer text; stream mode an unstarted AnswerStream."""
        if mode == "atomic":
            return await self.answer(template_id, context)
        if mode == "stream":
            return self.stream(template_id, context)
        raise ValueError(f"unknown generation mode: {mode!r}")
