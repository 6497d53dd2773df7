from fastapi import APIRouter, Depends, HTTPException, Query, Response
from typing import List, Optional
import logging

from ..models.user_model import User
from ..schemas.email import (
    EmailOut,
    EmailResponseOut,
    EmailResponseUpdate,
    EmailSettingsIn,
    EmailSettingsOut,
    GenerateResponseOut,
    SendResponseIn,
    SyncOut,
)
from ..security.session_auth import get_current_user, require_owner
from ..security.vault import CredentialVault, get_vault
from ..services import progress
from ..services.email_sync import generate_email_response, send_email_response, sync_emails
from ..services.llm_client import LLMError
from ..services.presets import EMAIL_PROVIDER_PRESETS, apply_preset
from ..services.storage import Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("/providers")
def list_providers():
    return EMAIL_PROVIDER_PRESETS


@router.get("/settings", response_model=Optional[EmailSettingsOut])
def get_email_settings(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.get_email_settings(user.id)


@router.post("/settings", response_model=EmailSettingsOut)
def save_email_settings(
    payload: EmailSettingsIn,
    response: Response,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    vault: CredentialVault = Depends(get_vault),
):
    """Create or replace the user's mailbox settings; credentials are stored encrypted."""
    credentials = apply_preset(payload.email_provider, payload.credentials.model_dump(by_alias=True, exclude_none=True))
    fields = {
        "email_provider": payload.email_provider,
        "email": payload.email,
        "credentials": vault.encrypt_credentials(credentials),
        "active": True if payload.active is None else payload.active,
    }
    if storage.get_email_settings(user.id):
        settings = storage.update_email_settings(user.id, **fields)
    else:
        settings = storage.create_email_settings(user_id=user.id, **fields)
        response.status_code = 201
    log.info("email_settings_saved", extra={"user_id": user.id})
    return settings


@router.post("/sync", response_model=SyncOut)
def sync(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    vault: CredentialVault = Depends(get_vault),
):
    result = sync_emails(storage, user.id, vault)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or "Failed to sync emails")
    progress.bump(storage, user.id, progress.EMAIL_HANDLING, 5)
    return SyncOut(success=True, count=result.count, message=f"Successfully synced {result.count} new emails")


@router.get("/inbox", response_model=List[EmailOut])
def inbox(
    needs_response: Optional[bool] = Query(None, alias="needsResponse"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    # needsResponse=false lists everything, like an absent flag
    return storage.get_emails(user.id, needs_response=True if needs_response else None, limit=limit, offset=offset)


@router.put("/response/{response_id}", response_model=EmailResponseOut)
def update_response(
    response_id: int,
    payload: EmailResponseUpdate,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    current = require_owner(storage.get_email_response(response_id), user, "Email response")
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "status" not in fields and fields.get("draft_response", current.draft_response) != current.draft_response:
        fields["status"] = "edited"
    if not fields:
        return current
    return storage.update_email_response(response_id, **fields)


@router.post("/response/{response_id}/send")
def send_response(
    response_id: int,
    payload: Optional[SendResponseIn] = None,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    vault: CredentialVault = Depends(get_vault),
):
    require_owner(storage.get_email_response(response_id), user, "Email response")
    edited = payload.edited_response if payload else None
    result = send_email_response(storage, user.id, response_id, vault, edited_response=edited)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error or "Failed to send email")
    progress.bump(storage, user.id, progress.EMAIL_HANDLING, 10)
    return {"success": True}


@router.get("/{email_id}", response_model=EmailOut)
def get_email(email_id: int, user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return require_owner(storage.get_email(email_id), user, "Email")


@router.get("/{email_id}/responses", response_model=List[EmailResponseOut])
def list_responses(email_id: int, user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    require_owner(storage.get_email(email_id), user, "Email")
    return storage.get_email_responses(user.id, email_id=email_id)


@router.post("/{email_id}/generate-response", response_model=GenerateResponseOut)
def generate_response(email_id: int, user: User = Depends(get_current_user),
                      storage: Storage = Depends(get_storage)):
    require_owner(storage.get_email(email_id), user, "Email")
    try:
        draft = generate_email_response(storage, user.id, email_id)
    except LLMError as e:
        log.warning("generate_response_failed", extra={"user_id": user.id, "email_id": email_id,
                                                       "error_type": type(e).__name__})
        raise HTTPException(status_code=502, detail="Failed to generate response")
    return GenerateResponseOut(success=True, response=EmailResponseOut.model_validate(draft))
