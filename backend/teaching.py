"""
Teach orchestration: topic resolution, retrieval, prompt assembly,
generation and reply shaping for one request.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging

from backend import llm_client, retrieval
from backend.errors import InvalidRequest, RetrievalFailure, TeachingFailed, UpstreamTimeout
from backend.llm_parsing import parse_teach_output
from backend.prompts import build_messages, needs_introduction
from backend.sessions import SessionTracker

logger = logging.getLogger(__name__)

PROFESSOR_ROLE = "InventaLab Professor"


@dataclass
class TeachResult:
    role: str
    topic: str
    text: str
    is_introduction: bool
    sources: List[Dict[str, str]] = field(default_factory=list)
    mindmap: Optional[str] = None
    micro_questions: List[str] = field(default_factory=list)


def _best_effort_sources(query: str) -> List[Dict[str, str]]:
    """Search when configured; any retrieval problem just means no context."""
    if not retrieval.is_enabled():
        return []
    try:
        return retrieval.search(query)
    except (RetrievalFailure, UpstreamTimeout) as e:
        logger.warning("RAG skipped: %s", e)
        return []


def _generate(topic: str, sources, history, message: str, introduction: bool) -> Tuple[TeachResult, str]:
    messages = build_messages(
        topic=topic,
        context=retrieval.format_context(sources),
        history=history,
        message=message,
        introduction=introduction,
    )
    params = llm_client.INTRO_PARAMS if introduction else llm_client.DIALOGUE_PARAMS
    output = llm_client.send_messages(messages, params)
    parsed = parse_teach_output(output)
    return TeachResult(
        role=PROFESSOR_ROLE,
        topic=topic,
        text=parsed.text,
        is_introduction=introduction,
        sources=retrieval.display_sources(sources),
        mindmap=parsed.mindmap,
        micro_questions=parsed.micro_questions,
    ), output


def teach(tracker: SessionTracker, session_id: Optional[str], message: str) -> TeachResult:
    """
    Answer one learner message within a lesson session.

    Retrieval is optional here: failures are logged and the prompt falls
    back to the no-sources marker. Generation failures propagate. On
    success the exchange is appended to history, and an introduction turn
    advances the agenda after the reply has been built.

    Raises:
        InvalidSession: If the session id is missing or unknown.
        UpstreamError: If the generation provider fails.
    """
    tracker.get(session_id)
    with tracker.lock(session_id):
        session = tracker.get(session_id)
        topic = tracker.resolve_topic(session)
        introduction = needs_introduction(message, topic)

        sources = _best_effort_sources(topic if introduction else message)
        history = [entry.to_dict() for entry in session.history]
        result, output = _generate(topic, sources, history, message, introduction)

        tracker.append_history(session, message, output)
        if introduction:
            step = tracker.advance_step(session)
            logger.info("Session %s advanced to step %d", session.id, step)
        return result


def teach_topic(topic: Optional[str], retrieved: Optional[List[Dict[str, Any]]] = None) -> TeachResult:
    """
    Stateless retrieval-first variant: introduce ``topic`` from given sources.

    When no sources are supplied the topic is searched, and in this variant
    retrieval is mandatory.

    Raises:
        InvalidRequest: If no topic is given.
        TeachingFailed: If retrieval fails.
        UpstreamError: If the generation provider fails.
    """
    if not topic or not topic.strip():
        raise InvalidRequest("Topic is required")

    if retrieved:
        sources = [
            {
                "title": str(r.get("title") or ""),
                "content": str(r.get("content") or ""),
                "url": str(r.get("url") or ""),
            }
            for r in retrieved
        ]
    else:
        try:
            sources = retrieval.search(topic)
        except (RetrievalFailure, UpstreamTimeout) as e:
            logger.error("Retrieval failed for topic %r: %s", topic, e)
            raise TeachingFailed(str(e), details=e.details)

    result, _ = _generate(topic, sources, [], topic, introduction=True)
    return result


def search_sources(query: Optional[str]) -> Dict[str, Any]:
    """Standalone search; errors propagate to the caller."""
    if not query or not query.strip():
        raise InvalidRequest("Query is required")
    results = retrieval.search(query)
    return {
        "source": "tavily",
        "retrieved_at": datetime.now(timezone.utc).isoformat(),
        "results": results,
    }
