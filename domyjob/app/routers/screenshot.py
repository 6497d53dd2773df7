from fastapi import APIRouter, Depends, HTTPException
import logging

from ..models.user_model import User
from ..schemas.workspace import ContextOut, ScreenshotProcessRequest, ScreenshotSaveRequest
from ..security.session_auth import get_current_user
from ..services import assistant
from ..services.llm_client import LLMError
from ..services.storage import Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/process")
def process_screenshot(payload: ScreenshotProcessRequest, user: User = Depends(get_current_user)):
    try:
        result = assistant.process_screenshot(payload.data_url)
    except LLMError as e:
        log.warning("screenshot_failed", extra={"user_id": user.id, "error_type": type(e).__name__})
        raise HTTPException(status_code=502, detail="Failed to process screenshot")
    return {"result": result}


@router.post("/save-context", response_model=ContextOut, status_code=201)
def save_screenshot_context(payload: ScreenshotSaveRequest, user: User = Depends(get_current_user),
                            storage: Storage = Depends(get_storage)):
    return storage.create_context(
        user_id=user.id, name=payload.name, type="screenshot", content=payload.content, active=True,
    )
