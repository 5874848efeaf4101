# transcripts/transcript_writer.py

import os
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from copilot.state import ConversationTurn


def pair_turns(turns: Iterable[ConversationTurn]) -> List[Tuple[str, Optional[str]]]:
    """Pair each interviewer turn with the answer that follows it (if any)."""
    pairs: List[Tuple[str, Optional[str]]] = []
    for turn in turns:
        if turn.role == "user":
            pairs.append((turn.content, None))
        elif pairs and pairs[-1][1] is None:
            pairs[-1] = (pairs[-1][0], turn.content)
    return pairs


def write_session_transcript(turns: Iterable[ConversationTurn], base_dir: str = "data/sessions") -> str:
    """
    Write a single session's conversation to a markdown file.

    Format:
    # Q&A Transcript

    ## Q1. <question text>

    <answer markdown>

    ---
    """
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_dir = os.path.join(base_dir, ts)
    os.makedirs(session_dir, exist_ok=True)

    out_path = os.path.join(session_dir, "qa_log.md")

    with open(out_path, "w", encoding="utf-8") as f:
        f.write("# Q&A Transcript\n\n")
        for i, (question, answer) in enumerate(pair_turns(turns), 1):
            f.write(f"## Q{i}. {question.strip()}\n\n")
            f.write((answer or "_(no answer)_").strip() + "\n")
            f.write("\n---\n\n")

    return out_path
