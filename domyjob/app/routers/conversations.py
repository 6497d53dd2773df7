from fastapi import APIRouter, Depends, HTTPException
from typing import List
import logging

from ..models.user_model import User
from ..schemas.workspace import ConversationCreate, ConversationOut, MessageCreate, MessageOut
from ..security.session_auth import get_current_user, require_owner
from ..services import assistant
from ..services.llm_client import LLMError
from ..services.storage import Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("", response_model=List[ConversationOut])
def list_conversations(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.get_conversations(user.id)


@router.post("", response_model=ConversationOut, status_code=201)
def create_conversation(payload: ConversationCreate, user: User = Depends(get_current_user),
                        storage: Storage = Depends(get_storage)):
    return storage.create_conversation(user_id=user.id, title=payload.title)


@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
def list_messages(conversation_id: int, user: User = Depends(get_current_user),
                  storage: Storage = Depends(get_storage)):
    require_owner(storage.get_conversation(conversation_id), user, "Conversation")
    return storage.get_messages(conversation_id)


@router.post("/{conversation_id}/messages", response_model=List[MessageOut], status_code=201)
def post_message(conversation_id: int, payload: MessageCreate, user: User = Depends(get_current_user),
                 storage: Storage = Depends(get_storage)):
    """Save the user's message and answer it from the active contexts.

    Returns ``[user_message, assistant_message]``.
    """
    require_owner(storage.get_conversation(conversation_id), user, "Conversation")
    message = storage.create_message(conversation_id=conversation_id, content=payload.content, role="user")
    history = storage.get_messages(conversation_id)
    try:
        answer = assistant.generate_solution(message.content, storage.get_active_contexts(user.id), history)
    except LLMError as e:
        log.warning("solution_failed", extra={"user_id": user.id, "error_type": type(e).__name__})
        raise HTTPException(status_code=502, detail="Failed to generate a response")
    reply = storage.create_message(conversation_id=conversation_id, content=answer, role="assistant")
    return [message, reply]
