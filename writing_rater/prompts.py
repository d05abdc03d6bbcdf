"""
Evaluation prompt rendering.

The template lives in templates/evaluation_prompt.txt and is filled with
string.Template, so braces and `$` in user text pass through untouched.
Same inputs on the same day always render the same prompt.
"""

import os
from dataclasses import dataclass
from datetime import date
from string import Template
from typing import List, Optional

from .schemas import AnalysisRequest

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
EVALUATION_PROMPT_PATH = os.path.join(BASE_DIR, "templates", "evaluation_prompt.txt")

DEFAULT_SAMPLE_LENGTH = 150

_TEMPLATE: Optional[Template] = None


@dataclass(frozen=True)
class PromptContext:
    prompt: str
    word_count: int
    character_count: int
    analyzed_on: str
    sample_text: str


def _read_prompt(path: str) -> str:
    """Read a prompt text file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _template() -> Template:
    global _TEMPLATE
    if _TEMPLATE is None:
        _TEMPLATE = Template(_read_prompt(EVALUATION_PROMPT_PATH))
    return _TEMPLATE


def count_words(text: str) -> int:
    return len(text.split())


def format_date(day: date) -> str:
    # M/D/YYYY, no zero padding
    return f"{day.month}/{day.day}/{day.year}"


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def make_sample(text: str, length: int = DEFAULT_SAMPLE_LENGTH) -> str:
    sample = _escape(text[:length])
    if len(text) > length:
        sample += "..."
    return sample


def _criteria_block(criteria: List[str]) -> str:
    return ",".join(
        f'\n  "{_escape(name)}": {{"score": [1-10], "feedback": "[specific feedback]"}}'
        for name in criteria
    )


def build_prompt(
    request: AnalysisRequest,
    *,
    today: Optional[date] = None,
    sample_length: int = DEFAULT_SAMPLE_LENGTH,
) -> PromptContext:
    """
    Render the evaluation prompt for a validated request.

    Criteria are listed in the caller's order, followed by `overall` and
    `writing_info`.
    """
    text = request.text
    word_count = count_words(text)
    character_count = len(text)
    analyzed_on = format_date(today or date.today())
    sample_text = make_sample(text, sample_length)

    prompt = _template().substitute(
        writing_type_lower=request.writing_type.lower(),
        writing_type=_escape(request.writing_type),
        text=text,
        criteria_block=_criteria_block(request.criteria),
        word_count=word_count,
        character_count=character_count,
        analyzed_on=analyzed_on,
        sample_text=sample_text,
    )
    return PromptContext(
        prompt=prompt,
        word_count=word_count,
        character_count=character_count,
        analyzed_on=analyzed_on,
        sample_text=sample_text,
    )
