"""
LLM Client module for chat-completion providers (Groq, Gemini).
Handles request building, response parsing, and error handling.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging
import os

import requests
from dotenv import load_dotenv

from backend.errors import UpstreamError, UpstreamTimeout

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# Configuration from environment
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "groq").lower()
GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
GROQ_API_URL: str = os.getenv("GROQ_API_URL", "https://api.groq.com/openai/v1")
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_API_URL: str = os.getenv("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta")
REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))

PROVIDERS = ("groq", "gemini")

FALLBACK_REPLY = "Let's pause. What assumption are you making right now?"


@dataclass(frozen=True)
class GenerationParams:
    """Sampling settings sent with every generation call."""

    temperature: float = 0.7
    max_tokens: int = 600

    def __post_init__(self):
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be within [0, 1], got {self.temperature}")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")


INTRO_PARAMS = GenerationParams(temperature=0.7, max_tokens=1200)
DIALOGUE_PARAMS = GenerationParams(temperature=0.7, max_tokens=600)


def _active_provider(provider: Optional[str]) -> str:
    name = (provider or LLM_PROVIDER or "groq").lower()
    if name not in PROVIDERS:
        raise UpstreamError(f"Unknown LLM provider: {name}")
    return name


def _validate_config(provider: str) -> None:
    """
    Validate that the API key for the chosen provider is set.

    Raises:
        UpstreamError: If the key is missing.
    """
    if provider == "groq" and not GROQ_API_KEY:
        raise UpstreamError("GROQ_API_KEY not found in environment variables", provider=provider)
    if provider == "gemini" and not GEMINI_API_KEY:
        raise UpstreamError("GEMINI_API_KEY not found in environment variables", provider=provider)


def _build_headers() -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {GROQ_API_KEY}",
        "Content-Type": "application/json"
    }


def _groq_request(messages: List[Dict[str, str]], params: GenerationParams):
    endpoint = f"{GROQ_API_URL}/chat/completions"
    payload = {
        "model": GROQ_MODEL,
        "messages": messages,
        "temperature": params.temperature,
        "max_tokens": params.max_tokens,
        "stream": False
    }
    return requests.post(endpoint, headers=_build_headers(), json=payload, timeout=REQUEST_TIMEOUT)


def _to_gemini_payload(messages: List[Dict[str, str]], params: GenerationParams) -> Dict[str, Any]:
    """
    Convert role-tagged chat messages to a Gemini generateContent body.

    System entries are merged into ``systemInstruction``; assistant turns
    use Gemini's ``model`` role.
    """
    system_text = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
    contents = [
        {
            "role": "model" if m["role"] == "assistant" else "user",
            "parts": [{"text": m["content"]}],
        }
        for m in messages
        if m["role"] != "system"
    ]
    payload: Dict[str, Any] = {
        "contents": contents,
        "generationConfig": {
            "temperature": params.temperature,
            "maxOutputTokens": params.max_tokens,
        },
    }
    if system_text:
        payload["systemInstruction"] = {"parts": [{"text": system_text}]}
    return payload


def _gemini_request(messages: List[Dict[str, str]], params: GenerationParams):
    endpoint = f"{GEMINI_API_URL}/models/{GEMINI_MODEL}:generateContent"
    return requests.post(
        endpoint,
        params={"key": GEMINI_API_KEY},
        headers={"Content-Type": "application/json"},
        json=_to_gemini_payload(messages, params),
        timeout=REQUEST_TIMEOUT,
    )


def _parse_groq(data: Dict[str, Any]) -> Optional[str]:
    if "choices" not in data or not isinstance(data["choices"], list):
        raise UpstreamError("Invalid response format from API", provider="groq")
    if not data["choices"]:
        return None
    choice = data["choices"][0]
    if not isinstance(choice, dict):
        raise UpstreamError("Invalid response format from API", provider="groq")
    # For chat completions, the content is in choices[0].message.content
    if isinstance(choice.get("message"), dict):
        return choice["message"].get("content")
    # Fallback to text field for backward compatibility
    return choice.get("text")


def _parse_gemini(data: Dict[str, Any]) -> Optional[str]:
    if "candidates" not in data or not isinstance(data["candidates"], list):
        raise UpstreamError("Invalid response format from API", provider="gemini")
    if not data["candidates"]:
        return None
    candidate = data["candidates"][0]
    if not isinstance(candidate, dict):
        raise UpstreamError("Invalid response format from API", provider="gemini")
    content = candidate.get("content") or {}
    if not isinstance(content, dict):
        raise UpstreamError("Invalid response format from API", provider="gemini")
    parts = content.get("parts") or []
    if not isinstance(parts, list):
        raise UpstreamError("Invalid response format from API", provider="gemini")
    texts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
    return "\n".join(texts) if texts else None


def _parse_response(response: requests.Response, provider: str) -> str:
    """
    Extract generated text from a provider response.

    Returns:
        str: Generated text, or FALLBACK_REPLY when the model returned nothing.

    Raises:
        UpstreamError: If the API returned an error or an unreadable payload.
    """
    if not response.ok:
        logger.error("%s API error %s: %s", provider, response.status_code, response.text)
        raise UpstreamError(
            f"{provider} returned status {response.status_code}",
            details=response.text,
            provider=provider,
        )
    try:
        data = response.json()
    except ValueError:
        raise UpstreamError("Failed to parse API response", details=response.text, provider=provider)
    if not isinstance(data, dict):
        raise UpstreamError("Invalid response format from API", provider=provider)

    text = _parse_groq(data) if provider == "groq" else _parse_gemini(data)
    if not text or not str(text).strip():
        return FALLBACK_REPLY
    return str(text).strip()


def send_messages(
    messages: List[Dict[str, str]],
    params: GenerationParams = DIALOGUE_PARAMS,
    provider: Optional[str] = None,
) -> str:
    """
    Send chat messages to the configured provider and return the reply text.

    Args:
        messages (List[Dict[str, str]]): Ordered ``{role, content}`` entries.
        params (GenerationParams, optional): Temperature and output length.
        provider (str, optional): "groq" or "gemini"; defaults to LLM_PROVIDER.

    Returns:
        str: Non-empty model output.

    Raises:
        UpstreamError: On missing configuration, network failure, non-success
            status or malformed payload.
        UpstreamTimeout: If the provider does not answer within REQUEST_TIMEOUT.
    """
    name = _active_provider(provider)
    _validate_config(name)

    try:
        if name == "groq":
            response = _groq_request(messages, params)
        else:
            response = _gemini_request(messages, params)
    except requests.exceptions.Timeout as e:
        logger.error("%s request timed out: %s", name, e)
        raise UpstreamTimeout(f"{name} request timed out", details=str(e), provider=name)
    except requests.RequestException as e:
        logger.error("%s service unavailable: %s", name, e)
        raise UpstreamError(f"{name} service unavailable", details=str(e), provider=name)

    return _parse_response(response, name)


def provider_label(provider: Optional[str] = None) -> str:
    name = (provider or LLM_PROVIDER or "groq").lower()
    if name == "gemini":
        return f"Gemini {GEMINI_MODEL}"
    return f"Groq {GROQ_MODEL}"
