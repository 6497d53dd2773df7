from fastapi import APIRouter, Depends, HTTPException
import logging

from ..models.user_model import User
from ..schemas.workspace import DraftEmailRequest, SummarizeRequest
from ..security.session_auth import get_current_user
from ..services import assistant, progress
from ..services.llm_client import LLMError
from ..services.storage import Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/draft-email")
def draft_email(payload: DraftEmailRequest, user: User = Depends(get_current_user),
                storage: Storage = Depends(get_storage)):
    try:
        draft = assistant.generate_email_draft(
            payload.subject, payload.purpose, payload.details, payload.tone,
            storage.get_active_contexts(user.id),
        )
    except LLMError as e:
        log.warning("draft_email_failed", extra={"user_id": user.id, "error_type": type(e).__name__})
        raise HTTPException(status_code=502, detail="Failed to generate email draft")
    storage.create_task(
        user_id=user.id,
        title=f"Draft email: {payload.subject}",
        description=payload.details,
        status="completed",
    )
    progress.bump(storage, user.id, progress.EMAIL_DRAFTING, 5)
    return {"email": draft}


@router.post("/summarize")
def summarize(payload: SummarizeRequest, user: User = Depends(get_current_user),
              storage: Storage = Depends(get_storage)):
    text = payload.text or ""
    if payload.context_id is not None:
        context = storage.get_context(payload.context_id)
        # a foreign context is reported as missing
        if context is None or context.user_id != user.id:
            raise HTTPException(status_code=404, detail="Context not found")
        text = context.content
    if not text:
        raise HTTPException(status_code=400, detail="No text to summarize")
    try:
        summary = assistant.summarize_document(text)
    except LLMError as e:
        log.warning("summarize_failed", extra={"user_id": user.id, "error_type": type(e).__name__})
        raise HTTPException(status_code=502, detail="Failed to summarize document")
    progress.bump(storage, user.id, progress.DOCUMENTATION_ANALYSIS, 5)
    return {"summary": summary}
