# copilot/llm/ollama_client.py

import json
import logging
from typing import Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

OLLAMA_URL = "http://localhost:11434/api/chat"
MODEL_NAME = "llama3.1"  # or whatever you named the model in `ollama list`


class OllamaStream:
    """
    Iterator over text chunks of a streamed /api/chat reply.

    Ollama streams newline-delimited JSON objects:
    {"message": {"content": "..."}, "done": false}
    close() drops the HTTP connection, which aborts generation server-side.
    """

    def __init__(self, resp: requests.Response):
        self._resp = resp
        self._lines = resp.iter_lines(decode_unicode=True)
        self._closed = False

    def __iter__(self):
        return self

    def __next__(self) -> str:
        while not self._closed:
            line = next(self._lines, None)
            if line is None:
                self.close()
                break
            if not line:
                continue
            data = json.loads(line)
            if "error" in data:
                self.close()
                raise RuntimeError(f"Ollama error: {data['error']}")
            chunk = data.get("message", {}).get("content", "")
            if data.get("done"):
                self.close()
                if chunk:
                    return chunk
                break
            if chunk:
                return chunk
        raise StopIteration

    def close(self):
        if not self._closed:
            self._closed = True
            self._resp.close()


class OllamaClient:
    def __init__(self, url: str = OLLAMA_URL, model: str = MODEL_NAME, timeout: float = 120):
        self.url = url
        self.model = model
        self.timeout = timeout
        self.session = requests.Session()

    @classmethod
    def from_settings(cls, llm_cfg: dict) -> "OllamaClient":
        return cls(
            url=llm_cfg["url"],
            model=llm_cfg["model"],
            timeout=float(llm_cfg["timeout_s"]),
        )

    def _payload(self, messages: List[Dict], stream: bool, model: Optional[str] = None, **extra) -> dict:
        payload = {
            "model": model or self.model,
            "messages": messages,
            "stream": stream,
        }
        payload.update(extra)
        return payload

    def chat(self, messages: List[Dict], model: Optional[str] = None, **extra) -> str:
        """Non-streaming /api/chat call; returns the raw reply text."""
        payload = self._payload(messages, stream=False, model=model, **extra)
        resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        resp.raise_for_status()
        data = resp.json()
        return data["message"]["content"]

    def generate(self, prompt: str, streaming: bool = False, system: Optional[str] = None):
        """
        Send one prompt. Returns the whole reply text, or an OllamaStream
        of chunks when streaming=True.
        """
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        if not streaming:
            return self.chat(messages)

        payload = self._payload(messages, stream=True)
        logger.debug("Opening stream to %s (model=%s)", self.url, self.model)
        resp = self.session.post(self.url, json=payload, timeout=self.timeout, stream=True)
        try:
            resp.raise_for_status()
        except requests.HTTPError:
            resp.close()
            raise
        return OllamaStream(resp)
