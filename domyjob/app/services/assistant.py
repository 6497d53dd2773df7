"""Assistant features built on the chat-completions client: email drafting,
document summaries, chat answers over the user's contexts, screenshot analysis."""
from typing import Sequence

from ..core.config import get_settings
from ..models.workspace_model import Context, Message
from . import llm_client

SOLUTION_SYSTEM_PROMPT = """
You are DoMyJob, an AI assistant that helps people complete work tasks efficiently.
You use available contexts to provide accurate, helpful responses.

AVAILABLE CONTEXTS:
{contexts}

CONVERSATION HISTORY:
{history}

Your task is to:
1. Understand the user's request in relation to their job responsibilities
2. Use the context information to provide the most relevant response
3. If asked to generate content (emails, reports, etc.), make it professional and ready to use
4. If the context doesn't contain enough information, acknowledge limitations and ask for clarification
5. For technical questions, provide step-by-step solutions when possible

Always maintain a helpful, professional tone.
""".strip()

SCREENSHOT_PROMPT = (
    "Please analyze this screenshot and extract all visible text content. Also provide a brief summary "
    "of what you see in the image (UI elements, layout, purpose of the screen)."
)


def format_contexts(contexts: Sequence[Context]) -> str:
    settings = get_settings()
    chosen = list(contexts)[:settings.max_prompt_contexts]
    if not chosen:
        return "No contexts available."
    limit = settings.context_max_chars
    return "\n\n".join(
        f"CONTEXT: {c.name}\n{c.content[:limit]}{'...' if len(c.content) > limit else ''}" for c in chosen
    )


def format_history(messages: Sequence[Message]) -> str:
    return "\n\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


def generate_email_draft(subject: str, purpose: str, details: str, tone: str, contexts: Sequence[Context]) -> str:
    prompt = (
        "You are an AI assistant that helps draft professional emails.\n"
        "Based on the following information, please create a complete email draft.\n\n"
        f"SUBJECT: {subject}\n"
        f"PURPOSE: {purpose}\n"
        f"DETAILS: {details}\n"
        f"TONE: {tone}\n\n"
        f"RELEVANT CONTEXT:\n{format_contexts(contexts)}\n\n"
        "Please generate a professional email that includes:\n"
        "- Appropriate greeting\n"
        "- Clear and concise content addressing the purpose\n"
        "- Proper closing\n"
        "- Name signature\n\n"
        "Format the email as if it were ready to send."
    )
    return llm_client.chat_completion([{"role": "user", "content": prompt}], temperature=0.7)


def summarize_document(text: str) -> str:
    limit = get_settings().summarize_max_chars
    truncated = text[:limit] + "..." if len(text) > limit else text
    return llm_client.chat_completion([
        {"role": "system", "content": "You are an AI assistant that summarizes documents. Provide a concise summary "
                                      "highlighting key points, main ideas, and important details."},
        {"role": "user", "content": f"Please summarize the following document: \n\n{truncated}"},
    ], temperature=0.5)


def generate_solution(user_query: str, contexts: Sequence[Context], previous_messages: Sequence[Message]) -> str:
    system = SOLUTION_SYSTEM_PROMPT.format(contexts=format_contexts(contexts), history=format_history(previous_messages))
    return llm_client.chat_completion([
        {"role": "system", "content": system},
        {"role": "user", "content": user_query},
    ], temperature=0.7)


def process_screenshot(data_url: str) -> str:
    """Vision analysis of a ``data:image/...;base64,`` URL (a bare base64 string is accepted too)."""
    base64_data = data_url.split(',', 1)[1] if ',' in data_url else data_url
    return llm_client.chat_completion([{
        "role": "user",
        "content": [
            {"type": "text", "text": SCREENSHOT_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{base64_data}"}},
        ],
    }], max_tokens=1000)
