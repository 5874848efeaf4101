# main.py (live mode with discreet overlay)

import argparse
import asyncio
import logging

from copilot.answer_llm import ResponseGenerator
from copilot.audio_capture import MicrophoneCapture, list_input_devices
from copilot.capture_session import CaptureSession
from copilot.config import DEFAULT_SETTINGS_PATH, load_settings
from copilot.errors import CaptureHandleAcquisitionFailed
from copilot.keyboard import KeyboardSubscription, TerminalKeySource
from copilot.llm.ollama_client import OllamaClient
from copilot.overlay import OverlaySession
from copilot.pipeline import QuestionPipeline
from copilot.screen_analysis import ScreenAnalyzer
from copilot.screen_capture import ScreenShare
from copilot.state import OverlayState, Point
from copilot.stt_whisper import WhisperTranscriber
from transcripts.transcript_writer import write_session_transcript

logger = logging.getLogger("copilot")


def read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        logger.warning("%s not found, continuing without it.", path)
        return ""


class TerminalRenderer:
    """Prints overlay changes; streamed answers are printed as deltas."""

    def __init__(self):
        self.last_title = None
        self.printed = ""

    def __call__(self, state: OverlayState):
        if not state.visible:
            return
        if state.title != self.last_title:
            print(f"\n=== {state.title} ===")
            self.last_title = state.title
            self.printed = ""

        content = state.content
        if content is None:
            return
        if content.kind == "answer":
            if not content.text.startswith(self.printed):
                self.printed = ""
            print(content.text[len(self.printed):], end="", flush=True)
            self.printed = content.text
        elif content.kind == "screen_analysis" and not self.printed:
            print(f"{content.analysis}\n\n{content.suggestion}")
            self.printed = content.suggestion
        elif content.kind == "error":
            print(f"(error) {content.message}")


async def run(cfg: dict):
    profile = cfg["profile"]
    resume = read_text(profile["resume_path"])
    jd = read_text(profile["jd_path"])

    llm = OllamaClient.from_settings(cfg["llm"])
    pipeline = QuestionPipeline(
        transcriber=WhisperTranscriber(cfg["stt"]),
        generator=ResponseGenerator(llm),
        resume=resume,
        job_description=jd,
    )

    share = ScreenShare()
    try:
        share.start()
    except CaptureHandleAcquisitionFailed as e:
        logger.warning("%s; screen analysis disabled.", e)

    capture = CaptureSession(
        pipeline=pipeline,
        analyzer=ScreenAnalyzer(llm, cfg["llm"]["vision_model"]),
        microphone_factory=lambda: MicrophoneCapture(cfg["audio"]),
        screen_share=share,
    )

    keys = TerminalKeySource(asyncio.get_running_loop())
    overlay_cfg = cfg["overlay"]
    overlay = OverlaySession(
        capture,
        keys,
        overlay_cfg["shortcuts"],
        position=Point(**overlay_cfg["position"]),
        on_change=TerminalRenderer(),
    )

    def on_typed(line: str):
        # anything longer than one word that is not a shortcut is a typed question
        if not overlay.is_shortcut(line) and len(line.split()) > 1:
            overlay.ask(line)

    shortcuts = ", ".join(f"{k}={a}" for a, k in overlay_cfg["shortcuts"].items())
    logger.info("Starting live mode. Shortcuts (type + Enter): %s", shortcuts)

    with KeyboardSubscription(keys, on_typed):
        overlay.start()
        try:
            await overlay.closed.wait()
        finally:
            await overlay.stop()

    if len(pipeline.conversation):
        out_path = write_session_transcript(pipeline.conversation, cfg["transcripts"]["base_dir"])
        logger.info("Q&A log saved to %s", out_path)
    logger.info("Exiting live mode.")


def main():
    parser = argparse.ArgumentParser(description="Live interview copilot")
    parser.add_argument("--config", default=DEFAULT_SETTINGS_PATH, help="path to settings.yaml")
    parser.add_argument("--list-devices", action="store_true", help="list audio input devices and exit")
    args = parser.parse_args()

    cfg = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, str(cfg["logging"]["level"]).upper(), logging.INFO),
        format="[%(levelname)s] %(message)s",
    )

    if args.list_devices:
        for info in list_input_devices():
            print(f"[{info['index']}] {info['name']} (inputs: {info['maxInputChannels']})")
        return

    try:
        asyncio.run(run(cfg))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
