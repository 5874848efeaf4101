# copilot/classifier.py

import re
from typing import List, Optional, Pattern, Tuple

from copilot.state import Label, Question


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


CODING_PATTERNS = [
    _rx(r"\b(code|function|class|method|endpoint|regex|loop|array|list|dictionary)\b"),
    _rx(r"\b(sql|select|join|group by|cte|window function|index)\b"),
    _rx(r"\b(time complexity|space complexity|big[- ]?o)\b"),
    # fenced code, inline code, or bracket punctuation
    _rx(r"```|`[^`]+`|[(){}\[\]]"),
]

ML_PATTERNS = [
    _rx(
        r"\b(features?|model\w*|train\w*|inference|roc|auc|precision|recall|confusion matrix"
        r"|pipelines?|hyperparameters?|gridsearchcv|randomizedsearchcv|bayesian"
        r"|xgboost|lightgbm|catboost)\b"
    ),
]

SYSTEM_DESIGN_PATTERNS = [
    _rx(
        r"\b(scal\w*|throughput|latency|cach\w*|cdn|load balancers?|partition\w*|shard\w*"
        r"|consistency|cap theorem|message queues?|kafka|rabbitmq|microservices?"
        r"|event[- ]?driven)\b"
    ),
]

BEHAVIORAL_PATTERNS = [
    _rx(
        r"\b(strengths?|weakness(es)?|conflicts?|failures?|why (us|this role)|teamwork"
        r"|leadership|deadlines?|stakeholders?|communication|motivation)\b"
    ),
]

PROCESS_DOMAIN_PATTERNS = [
    _rx(
        r"\b(kyc|qc|aml|sanctions?|pep|sla|audit\w*|escalation|validation|excel|vlookup"
        r"|pivot(table)?)\b"
    ),
]

# Evaluated top to bottom; the first rule-set with any match wins.
# Technical rule-sets come first so "write a function ... teamwork" is coding.
RULES: List[Tuple[Label, List[Pattern]]] = [
    (Label.CODING, CODING_PATTERNS),
    (Label.ML, ML_PATTERNS),
    (Label.SYSTEM_DESIGN, SYSTEM_DESIGN_PATTERNS),
    (Label.BEHAVIORAL, BEHAVIORAL_PATTERNS),
    (Label.PROCESS_DOMAIN, PROCESS_DOMAIN_PATTERNS),
]

ENGINEERING_ROLE_PATTERN = _rx(r"engineer|developer|swe|backend|data scientist")


def classify(question: Optional[str], job_description_hint: Optional[str] = None) -> Label:
    """Label a question by topic. Never raises; always returns a Label."""
    q = (question or "").strip().lower()
    if not q:
        return Label.OTHER

    for label, patterns in RULES:
        if any(p.search(q) for p in patterns):
            return label

    # ambiguous question: lean technical when the JD is an engineering role
    if job_description_hint and ENGINEERING_ROLE_PATTERN.search(job_description_hint):
        return Label.ML
    return Label.PROCESS_DOMAIN


def make_question(text: str, job_description_hint: Optional[str] = None) -> Question:
    return Question(raw_text=text.strip(), label=classify(text, job_description_hint))
