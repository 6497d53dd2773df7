from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, JSON, ForeignKey
from ..db.database import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class EmailSettings(Base):
    __tablename__ = 'email_settings'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), unique=True, nullable=False, index=True)
    email_provider = Column(String, nullable=False)  # gmail, outlook, yahoo, icloud, custom
    email = Column(String, nullable=False)
    # "iv_hex:cipher_hex" blob produced by CredentialVault
    credentials = Column(Text, nullable=False)
    active = Column(Boolean, default=True)
    last_synced = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class Email(Base):
    __tablename__ = 'emails'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    message_id = Column(String, unique=True, nullable=False, index=True)
    from_address = Column(String, nullable=False)
    to_address = Column(String, nullable=False)
    cc = Column(String, nullable=True)
    subject = Column(String, nullable=True)
    body = Column(Text, nullable=False)
    html = Column(Text, nullable=True)
    date = Column(DateTime, nullable=False, index=True)
    is_read = Column(Boolean, default=False)
    needs_response = Column(Boolean, default=False, index=True)
    response_generated = Column(Boolean, default=False)
    folder_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=_utcnow)


class EmailResponse(Base):
    __tablename__ = 'email_responses'
    id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey('emails.id'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    draft_response = Column(Text, nullable=False)
    # list of {"action": str, "priority": "high"|"medium"|"low"}
    suggested_actions = Column(JSON, nullable=True)
    status = Column(String, default='draft', nullable=False, index=True)  # draft | edited | sent
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
