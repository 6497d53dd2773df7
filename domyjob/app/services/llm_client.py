"""Thin client for an OpenAI-compatible ``/chat/completions`` endpoint.

Configured through OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL and
LLM_TIMEOUT. Every failure is raised as ``LLMError``; callers decide whether
to fail safe or surface the error.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..core.config import get_settings

log = logging.getLogger(__name__)


class LLMError(Exception):
    pass


def _message_text(data: Dict[str, Any]) -> str:
    choice = (data.get('choices') or [{}])[0]
    msg = choice.get('message') or {}
    content = msg.get('content')
    # some providers return a list of segments
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, dict):
                v = part.get('text')
                if isinstance(v, str) and v.strip():
                    parts.append(v.strip())
            elif isinstance(part, str) and part.strip():
                parts.append(part.strip())
        return "\n".join(parts).strip()
    if isinstance(content, str):
        return content.strip()
    return ''


def chat_completion(
    messages: List[Dict[str, Any]],
    *,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    json_mode: bool = False,
) -> str:
    """Return the assistant text of one completion."""
    settings = get_settings()
    if not settings.openai_api_key:
        raise LLMError('missing OPENAI_API_KEY')
    payload: Dict[str, Any] = {"model": settings.openai_model, "messages": messages}
    if temperature is not None:
        payload["temperature"] = temperature
    if max_tokens is not None:
        payload["max_tokens"] = max_tokens
    if json_mode:
        payload["response_format"] = {"type": "json_object"}
    headers = {
        'Authorization': f'Bearer {settings.openai_api_key}',
        'Content-Type': 'application/json',
    }
    endpoint = f"{settings.openai_base_url}/chat/completions"
    try:
        with httpx.Client(timeout=settings.llm_timeout) as client:
            resp = client.post(endpoint, headers=headers, json=payload)
    except httpx.HTTPError as e:
        log.warning("llm_transport_error", extra={"error_type": type(e).__name__, "model": settings.openai_model})
        raise LLMError(f'llm_transport_error: {e}') from e
    if resp.status_code >= 400:
        log.warning("llm_http_error", extra={"status": resp.status_code, "model": settings.openai_model})
        raise LLMError(f'llm_http_{resp.status_code}: {resp.text[:160]}')
    try:
        data = resp.json()
    except ValueError as e:
        raise LLMError('llm returned a non-JSON body') from e
    text = _message_text(data)
    if not text:
        raise LLMError('llm returned empty content')
    return text


def chat_json(messages: List[Dict[str, Any]], **kwargs: Any) -> Dict[str, Any]:
    """JSON-mode completion parsed into a dict."""
    text = chat_completion(messages, json_mode=True, **kwargs)
    # tolerate fenced output from providers that ignore response_format
    text = text.replace('```json', '').replace('```', '').strip()
    try:
        result = json.loads(text)
    except json.JSONDecodeError as e:
        raise LLMError('llm returned invalid JSON') from e
    if not isinstance(result, dict):
        raise LLMError('llm returned JSON that is not an object')
    return result
