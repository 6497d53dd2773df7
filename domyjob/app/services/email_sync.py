"""Email sync pass, reply drafting and reply sending for one user.

A sync pass is stateless apart from the stored watermark
(``EmailSettings.last_synced``): connect, fetch unseen mail since the
watermark, store new messages (drafting a reply for those that need one),
advance the watermark, disconnect. Nothing is retried; a failed pass leaves
the watermark untouched so the next user-triggered sync starts from the
same point.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from ..core.config import get_settings
from ..models.email_model import Email, EmailResponse
from ..security.vault import CredentialVault, DecryptionError
from . import auto_responder, mail_transport
from .llm_client import LLMError
from .mail_transport import EmailRecord, MailTransportError, OutgoingReply
from .storage import DuplicateEmailError, Storage

log = logging.getLogger(__name__)

SYNC_FOLDER = 'INBOX'


@dataclass
class SyncResult:
    success: bool
    count: int = 0
    error: Optional[str] = None


@dataclass
class SendResult:
    success: bool
    error: Optional[str] = None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back naive; they were stored as UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def compute_watermark(last_synced: Optional[datetime], now: datetime) -> datetime:
    if last_synced:
        return _as_utc(last_synced)
    return now - timedelta(days=get_settings().sync_lookback_days)


def create_draft(storage: Storage, user_id: int, email: Email) -> EmailResponse:
    """Draft a reply from the user's active contexts and persist it. Raises LLMError."""
    draft = auto_responder.draft_response(email, storage.get_active_contexts(user_id))
    response = storage.create_email_response(
        email_id=email.id,
        user_id=user_id,
        draft_response=draft.draft_response,
        suggested_actions=draft.suggested_actions,
        status='draft',
    )
    # separate write: a crash here leaves response_generated False, which the inbox re-offers
    storage.update_email(email.id, response_generated=True)
    return response


def _store_record(storage: Storage, user_id: int, record: EmailRecord) -> bool:
    # existence check first so re-delivered messages never reach the model
    if storage.get_email_by_message_id(record.message_id):
        return False
    needs_response = auto_responder.classify_needs_response(record.text, record.subject)
    try:
        saved = storage.create_email(
            user_id=user_id,
            message_id=record.message_id,
            from_address=record.from_address,
            to_address=record.to_address,
            cc=record.cc or '',
            subject=record.subject or '',
            body=record.text,
            html=record.html or '',
            date=record.date,
            is_read=False,
            needs_response=needs_response,
            response_generated=False,
            folder_path=record.folder or SYNC_FOLDER,
        )
    except DuplicateEmailError:
        log.info("email_already_stored", extra={"user_id": user_id})
        return False
    if needs_response:
        try:
            create_draft(storage, user_id, saved)
        except LLMError as e:
            log.warning("auto_draft_failed", extra={"user_id": user_id, "email_id": saved.id, "error_type": type(e).__name__})
    return True


def sync_emails(storage: Storage, user_id: int, vault: CredentialVault, now: Optional[datetime] = None) -> SyncResult:
    settings = storage.get_email_settings(user_id)
    if settings is None:
        return SyncResult(success=False, error='Email settings not found')
    if not settings.active:
        return SyncResult(success=False, error='Email integration is not active')
    now = now or datetime.now(timezone.utc)
    try:
        session = mail_transport.connect(settings, vault)
    except (MailTransportError, DecryptionError) as e:
        log.warning("email_sync_connect_failed", extra={"user_id": user_id, "error_type": type(e).__name__})
        return SyncResult(success=False, error=str(e))
    created = 0
    try:
        watermark = compute_watermark(settings.last_synced, now)
        records = mail_transport.fetch_since(session, SYNC_FOLDER, watermark)
        for record in records:
            if _store_record(storage, user_id, record):
                created += 1
        storage.update_email_settings(user_id, last_synced=now)
    except MailTransportError as e:
        log.warning("email_sync_fetch_failed", extra={"user_id": user_id, "error_type": type(e).__name__})
        return SyncResult(success=False, error=str(e))
    finally:
        mail_transport.close(session)
    log.info("email_sync_done", extra={"user_id": user_id, "count": created})
    return SyncResult(success=True, count=created)


def generate_email_response(storage: Storage, user_id: int, email_id: int) -> EmailResponse:
    email = storage.get_email(email_id)
    if email is None or email.user_id != user_id:
        raise LookupError(f"email {email_id} not found")
    return create_draft(storage, user_id, email)


def send_email_response(storage: Storage, user_id: int, response_id: int, vault: CredentialVault,
                        edited_response: Optional[str] = None) -> SendResult:
    response = storage.get_email_response(response_id)
    if response is None or response.user_id != user_id:
        return SendResult(success=False, error='Email response not found')
    email = storage.get_email(response.email_id)
    if email is None:
        return SendResult(success=False, error='Original email not found')
    settings = storage.get_email_settings(user_id)
    if settings is None:
        return SendResult(success=False, error='Email settings not found')
    body = edited_response or response.draft_response
    reply = OutgoingReply(
        original_message_id=email.message_id,
        original_from=email.from_address,
        original_subject=email.subject,
        body=body,
    )
    try:
        mail_transport.send(settings, vault, reply)
    except (MailTransportError, DecryptionError) as e:
        log.warning("email_send_failed", extra={"user_id": user_id, "response_id": response_id, "error_type": type(e).__name__})
        return SendResult(success=False, error=str(e))
    fields = {'status': 'sent', 'sent_at': datetime.now(timezone.utc)}
    if edited_response:
        fields['draft_response'] = edited_response
    storage.update_email_response(response_id, **fields)
    log.info("email_response_sent", extra={"user_id": user_id, "response_id": response_id})
    return SendResult(success=True)
