"""
Retrieval client for the Tavily web-search API.
Normalizes search hits into {title, content, url} records and renders
them as citation-labelled context for the generation prompt.
"""

from typing import Any, Dict, List
import logging
import os

import requests
from dotenv import load_dotenv

from backend.errors import RetrievalFailure, UpstreamTimeout

load_dotenv()

logger = logging.getLogger(__name__)

# Configuration from environment
TAVILY_API_KEY: str = os.getenv("TAVILY_API_KEY", "")
TAVILY_API_URL: str = os.getenv("TAVILY_API_URL", "https://api.tavily.com/search")
REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))

DEFAULT_MAX_RESULTS = 3
SNIPPET_LIMIT = 150


def is_enabled() -> bool:
    """Whether a search key is configured; without one RAG is skipped."""
    return bool(TAVILY_API_KEY)


def _normalize(result: Dict[str, Any]) -> Dict[str, str]:
    return {
        "title": str(result.get("title") or ""),
        "content": str(result.get("content") or ""),
        "url": str(result.get("url") or ""),
    }


def search(query: str, max_results: int = DEFAULT_MAX_RESULTS) -> List[Dict[str, str]]:
    """
    Run a web search and return up to ``max_results`` normalized sources.

    Args:
        query (str): Free-text search query.
        max_results (int, optional): Upper bound on returned records. Defaults to 3.

    Returns:
        List[Dict[str, str]]: Records with ``title``, ``content`` and ``url``.
        An empty result set is returned as an empty list.

    Raises:
        RetrievalFailure: If the key is missing, the request fails or the
            provider answers with a non-success status or invalid JSON.
        UpstreamTimeout: If the provider does not answer within REQUEST_TIMEOUT.
    """
    if not TAVILY_API_KEY:
        raise RetrievalFailure("TAVILY_API_KEY not found in environment variables")

    payload = {
        "api_key": TAVILY_API_KEY,
        "query": query,
        "max_results": max_results,
    }
    try:
        response = requests.post(
            TAVILY_API_URL,
            headers={"Content-Type": "application/json"},
            json=payload,
            timeout=REQUEST_TIMEOUT,
        )
    except requests.exceptions.Timeout as e:
        raise UpstreamTimeout("Search request timed out", details=str(e), provider="tavily")
    except requests.RequestException as e:
        raise RetrievalFailure("Search request failed", details=str(e))

    if not response.ok:
        raise RetrievalFailure(
            f"Search provider returned {response.status_code}",
            details=response.text,
        )

    try:
        data = response.json()
    except ValueError as e:
        raise RetrievalFailure("Failed to parse search response", details=str(e))

    if not isinstance(data, dict):
        raise RetrievalFailure("Invalid search response", details=response.text)
    results = data.get("results")
    if not results:
        return []
    if not isinstance(results, list):
        raise RetrievalFailure("Invalid search response", details=response.text)
    return [_normalize(r) for r in results[:max_results] if isinstance(r, dict)]


def format_context(sources: List[Dict[str, str]]) -> str:
    """Render sources as numbered reference blocks, or "" when there are none."""
    return "\n\n".join(
        f"[Source {i}] {s['title']}\n{s['content']}\nURL: {s['url']}"
        for i, s in enumerate(sources, 1)
    )


def display_sources(sources: List[Dict[str, str]], limit: int = SNIPPET_LIMIT) -> List[Dict[str, str]]:
    # Shape returned to the client: snippet shortened for display
    return [
        {"title": s["title"], "url": s["url"], "content": s["content"][:limit]}
        for s in sources
    ]
