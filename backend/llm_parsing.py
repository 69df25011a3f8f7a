"""Helper functions for pulling structured fields out of free-text replies.

The model is asked for prose, a Mermaid mind map and a few closing
questions, but nothing enforces that format. These helpers are
heuristics, not parsers:

- only the first ```mermaid fence is returned as the mind map; an
  unterminated fence is ignored and left in the text.
- any short line ending in "?" counts as a micro-question, so a quoted
  question inside the prose is picked up, while a long question
  (>= QUESTION_MAX_LENGTH characters) or one followed by trailing
  punctuation is missed.
"""
from dataclasses import dataclass, field
from typing import List, Optional
import re

MERMAID_BLOCK = re.compile(r"```mermaid\n([\s\S]*?)\n```")
MERMAID_ANY = re.compile(r"```mermaid[\s\S]*?```")

QUESTION_MAX_LENGTH = 100
MAX_MICRO_QUESTIONS = 3

DEFAULT_MICRO_QUESTIONS = [
    "What assumptions am I making here?",
    "How would this fail in a real system?",
    "What's the core constraint?",
]


@dataclass
class ParsedReply:
    text: str
    mindmap: Optional[str] = None
    micro_questions: List[str] = field(default_factory=list)


def extract_mindmap(text: str) -> Optional[str]:
    """Return the body of the first mermaid block, or None if there is none"""
    match = MERMAID_BLOCK.search(text or "")
    if match:
        return match.group(1).strip()
    return None


def strip_mindmap(text: str) -> str:
    """Remove every mermaid block so the remaining prose can be displayed"""
    return MERMAID_ANY.sub("", text or "").strip()


def extract_micro_questions(text: str, limit: int = MAX_MICRO_QUESTIONS) -> List[str]:
    """Collect short question lines, falling back to generic reflective prompts"""
    questions = []
    for line in (text or "").split("\n"):
        # Length is measured on the raw line, before stripping
        if line.strip().endswith("?") and len(line) < QUESTION_MAX_LENGTH:
            questions.append(line.strip())

    if not questions:
        return list(DEFAULT_MICRO_QUESTIONS)
    return questions[:limit]


def parse_teach_output(text: str) -> ParsedReply:
    """Split a raw model reply into display text, mind map and micro-questions"""
    return ParsedReply(
        text=strip_mindmap(text),
        mindmap=extract_mindmap(text),
        micro_questions=extract_micro_questions(text),
    )
