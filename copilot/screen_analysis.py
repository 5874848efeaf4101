# copilot/screen_analysis.py

import base64
import json
import logging

from copilot.errors import ScreenAnalysisFailed
from copilot.llm.ollama_client import OllamaClient
from copilot.prompts import SCREEN_ANALYSIS_PROMPT
from copilot.state import ScreenAnalysisPayload

logger = logging.getLogger(__name__)


def _extract_json(text: str) -> dict:
    """Parse a model reply as JSON, falling back to the outermost {...} span."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        raise ScreenAnalysisFailed("Screen analysis returned no JSON object")
    try:
        return json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ScreenAnalysisFailed(f"Screen analysis returned malformed JSON: {e}") from e


class ScreenAnalyzer:
    def __init__(self, client: OllamaClient, vision_model: str):
        self.client = client
        self.vision_model = vision_model

    def analyze(self, png_bytes: bytes) -> ScreenAnalysisPayload:
        messages = [{
            "role": "user",
            "content": SCREEN_ANALYSIS_PROMPT,
            "images": [base64.b64encode(png_bytes).decode("ascii")],
        }]
        logger.debug("Sending %d byte screenshot to %s", len(png_bytes), self.vision_model)
        reply = self.client.chat(messages, model=self.vision_model, format="json")
        data = _extract_json(reply)

        analysis = str(data.get("analysis", "")).strip()
        suggestion = str(data.get("suggestion", "")).strip()
        if not analysis and not suggestion:
            raise ScreenAnalysisFailed("Screen analysis produced no output")
        return ScreenAnalysisPayload(analysis=analysis, suggestion=suggestion)
