from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence
import logging

from ..core.config import get_settings
from ..models.email_model import Email
from ..models.workspace_model import Context
from . import llm_client
from .llm_client import LLMError

log = logging.getLogger(__name__)

CONFIDENCE_THRESHOLD = 0.7
MAX_SUGGESTED_ACTIONS = 3
PRIORITIES = ('high', 'medium', 'low')

CLASSIFY_SYSTEM_PROMPT = (
    "You are an AI assistant that analyzes emails to determine if they require a response. "
    "Respond with JSON in the format: {\"needsResponse\": boolean, \"confidence\": number}"
)

DRAFT_SYSTEM_PROMPT = (
    "You are an AI assistant that drafts email responses based on the content of received emails "
    "and contextual information. Respond with JSON in the format specified."
)


@dataclass
class DraftResult:
    draft_response: str
    suggested_actions: List[Dict[str, str]] = field(default_factory=list)


def _truncate(text: str, limit: int, marker: str) -> str:
    text = text or ''
    return text[:limit] + marker if len(text) > limit else text


def build_context(contexts: Sequence[Context]) -> str:
    settings = get_settings()
    chosen = list(contexts)[:settings.max_prompt_contexts]
    if not chosen:
        return ''
    blocks = ["Using the following context information:"]
    for ctx in chosen:
        content = _truncate(ctx.content, settings.context_max_chars, '... [Content truncated]')
        blocks.append(f"--- {ctx.name} ---\n{content}")
    return "\n\n".join(blocks)


def classify_needs_response(body: str, subject: str) -> bool:
    """True only for a confident "needs response" verdict. Any failure yields False."""
    limit = get_settings().classify_max_body_chars
    truncated = _truncate(body, limit, '... [Email truncated]')
    prompt = (
        f"Subject: {subject}\n\n"
        f"Email body:\n{truncated}\n\n"
        "Based on the email above, does this email require a response? Consider:\n"
        "1. Is it a question or request directed at the recipient?\n"
        "2. Is it expecting some action or follow-up?\n"
        "3. Is it a personal message (not a newsletter, notification, or marketing)?\n"
        "4. Does it contain language suggesting a reply is expected?\n\n"
        "Respond with JSON:\n{\"needsResponse\": true|false, \"confidence\": 0.0-1.0}"
    )
    try:
        result = llm_client.chat_json([
            {"role": "system", "content": CLASSIFY_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ])
        confidence = float(result.get('confidence') or 0)
    except (LLMError, TypeError, ValueError) as e:
        log.warning("needs_response_classification_failed", extra={"error_type": type(e).__name__})
        return False
    return result.get('needsResponse') is True and confidence > CONFIDENCE_THRESHOLD


def _normalize_actions(raw: Any) -> List[Dict[str, str]]:
    actions: List[Dict[str, str]] = []
    if not isinstance(raw, list):
        return actions
    for item in raw:
        if not isinstance(item, dict):
            continue
        action = str(item.get('action') or '').strip()
        if not action:
            continue
        priority = str(item.get('priority') or '').strip().lower()
        if priority not in PRIORITIES:
            priority = 'medium'
        actions.append({"action": action, "priority": priority})
        if len(actions) >= MAX_SUGGESTED_ACTIONS:
            break
    return actions


def draft_response(email: Email, active_contexts: Sequence[Context]) -> DraftResult:
    """Draft a reply with up to three suggested actions. Raises LLMError on any failure."""
    settings = get_settings()
    body = _truncate(email.body, settings.classify_max_body_chars, '... [Email truncated]')
    prompt = (
        f"{build_context(active_contexts)}\n\n"
        "You need to write a response to the following email:\n\n"
        f"From: {email.from_address}\n"
        f"To: {email.to_address}\n"
        f"Subject: {email.subject or '(No subject)'}\n\n"
        f"{body}\n\n"
        "Draft a professional and thoughtful response. Consider the tone, context, and any specific "
        "requests or questions in the email.\n\n"
        "Also, suggest up to 3 possible actions that might be appropriate based on this email "
        "(e.g., scheduling a meeting, sending additional information, etc.).\n\n"
        "Respond with JSON in this format:\n"
        "{\n"
        "  \"draftResponse\": \"Your draft email text here\",\n"
        "  \"suggestedActions\": [\n"
        "    {\"action\": \"Action description\", \"priority\": \"high|medium|low\"}\n"
        "  ]\n"
        "}"
    ).strip()
    result = llm_client.chat_json([
        {"role": "system", "content": DRAFT_SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ])
    draft = result.get('draftResponse')
    if not isinstance(draft, str) or not draft.strip():
        raise LLMError('llm returned no draftResponse')
    return DraftResult(draft_response=draft.strip(), suggested_actions=_normalize_actions(result.get('suggestedActions')))
