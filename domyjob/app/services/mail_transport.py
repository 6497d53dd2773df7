"""IMAP retrieval and SMTP reply delivery for a user's configured mailbox.

Credentials come from the encrypted ``EmailSettings.credentials`` blob:
``{username, password, host, port, tls, smtpHost, smtpPort, smtpSecure}``.
"""
from __future__ import annotations

import email
import html as _html
import imaplib
import logging
import re
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from email import policy
from email.message import EmailMessage
from email.utils import formatdate, make_msgid
from typing import List, Optional

from ..core.config import get_settings
from ..models.email_model import EmailSettings
from ..security.vault import CredentialVault

logger = logging.getLogger(__name__)

_MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']


class MailTransportError(Exception):
    pass


class MailConnectionError(MailTransportError):
    """IMAP connect, login, select or search failed."""


class MailSendError(MailTransportError):
    """SMTP delivery failed."""


@dataclass
class EmailRecord:
    message_id: str
    from_address: str
    to_address: str
    cc: str
    subject: str
    date: datetime
    text: str
    html: str
    folder: str = 'INBOX'


@dataclass
class OutgoingReply:
    original_message_id: str
    original_from: str
    original_subject: Optional[str]
    body: str


@dataclass
class MailSession:
    imap: imaplib.IMAP4
    account: str


def _relaxed_ssl_context() -> ssl.SSLContext:
    # self-signed IMAP endpoints are accepted
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def imap_date(value: datetime) -> str:
    """IMAP SEARCH date (``16-Oct-2026``), locale independent."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year}"


def connect(settings: EmailSettings, vault: CredentialVault, timeout: float | None = None) -> MailSession:
    creds = vault.decrypt_credentials(settings.credentials)
    host = creds.get('host')
    if not host:
        raise MailConnectionError('IMAP host is not configured')
    port = int(creds.get('port') or 993)
    user = creds.get('username') or settings.email
    password = creds.get('password') or ''
    if timeout is None:
        timeout = get_settings().mail_timeout
    imap = None
    try:
        if creds.get('tls', True):
            imap = imaplib.IMAP4_SSL(host, port, ssl_context=_relaxed_ssl_context(), timeout=timeout)
        else:
            imap = imaplib.IMAP4(host, port, timeout=timeout)
        imap.login(user, password)
    except (imaplib.IMAP4.error, OSError) as e:
        logger.warning("imap_connect_failed", extra={"error_type": type(e).__name__})
        if imap is not None:
            try:
                imap.shutdown()
            except OSError:
                logger.debug("imap_shutdown_failed", exc_info=True)
        raise MailConnectionError(f"IMAP connection to {host}:{port} failed: {e}") from e
    return MailSession(imap=imap, account=user)


def close(session: MailSession) -> None:
    try:
        session.imap.logout()
    except (imaplib.IMAP4.error, OSError):
        logger.debug("imap_logout_failed", exc_info=True)


def fetch_since(session: MailSession, folder: str, watermark: datetime) -> List[EmailRecord]:
    """Unseen messages in ``folder`` since ``watermark``. Incomplete messages are dropped."""
    imap = session.imap
    try:
        status, _ = imap.select(folder)
        if status != 'OK':
            raise MailConnectionError(f"cannot select folder {folder}")
        status, data = imap.uid('search', None, 'UNSEEN', 'SINCE', imap_date(watermark))
        if status != 'OK':
            raise MailConnectionError(f"search failed in {folder} (status {status})")
        uids = data[0].split() if data and data[0] else []
        records: List[EmailRecord] = []
        for uid in uids:
            res, msg_data = imap.uid('fetch', uid, '(BODY.PEEK[])')
            if res != 'OK':
                logger.warning("imap_fetch_failed", extra={"status": res})
                continue
            for response_part in msg_data:
                if isinstance(response_part, tuple):
                    record = parse_message(response_part[1], folder)
                    if record is not None:
                        records.append(record)
    except (imaplib.IMAP4.error, OSError) as e:
        raise MailConnectionError(f"IMAP fetch failed: {e}") from e
    return records


def html_to_text(markup: str) -> str:
    txt = re.sub(r'<\s*br\s*/?>', '\n', markup, flags=re.I)
    txt = re.sub(r'</(p|div|tr|table|li|h[1-6])\s*>', '\n', txt, flags=re.I)
    txt = re.sub(r'<(script|style)[^>]*>.*?</\1\s*>', ' ', txt, flags=re.I | re.S)
    txt = re.sub(r'<[^>]+>', ' ', txt)
    txt = _html.unescape(txt)
    txt = re.sub(r'[ \t\r\f\v]+', ' ', txt)
    return re.sub(r'\n\s*\n+', '\n\n', txt).strip()


def _part_text(part) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b''
        return payload.decode('utf-8', errors='ignore')


def parse_message(raw: bytes, folder: str = 'INBOX') -> Optional[EmailRecord]:
    """Normalise one RFC822 message. Returns None if message-id, from, to or text is missing."""
    try:
        msg = email.message_from_bytes(raw, policy=policy.default)
        message_id = str(msg.get('Message-ID') or '').strip()
        from_address = str(msg.get('From') or '').strip()
        to_address = str(msg.get('To') or '').strip()
        cc = str(msg.get('Cc') or '').strip()
        subject = str(msg.get('Subject') or '').strip()
        date_hdr = msg.get('Date')
        date = getattr(date_hdr, 'datetime', None) or datetime.now(timezone.utc)
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        plain = msg.get_body(preferencelist=('plain',))
        html_part = msg.get_body(preferencelist=('html',))
        text = _part_text(plain) if plain is not None else ''
        html = _part_text(html_part) if html_part is not None else ''
    except (ValueError, TypeError, IndexError, LookupError) as e:
        logger.warning("mail_parse_failed", extra={"error_type": type(e).__name__})
        return None
    if not text.strip() and html:
        text = html_to_text(html)
    if not (message_id and from_address and to_address and text.strip()):
        logger.info("mail_dropped_incomplete", extra={"folder": folder})
        return None
    return EmailRecord(
        message_id=message_id,
        from_address=from_address,
        to_address=to_address,
        cc=cc,
        subject=subject,
        date=date,
        text=text,
        html=html,
        folder=folder,
    )


def extract_reply_address(from_header: str) -> str:
    """Address inside ``<...>``, else the trailing token, else the raw header."""
    value = from_header or ''
    m = re.search(r'<([^>]+)>', value) or re.search(r'([^<\s]+)$', value)
    return m.group(1) if m else value


def reply_subject(subject: Optional[str]) -> str:
    if subject and subject.lower().startswith('re:'):
        return subject
    return f"Re: {subject or '(No subject)'}"


def build_reply(sender: str, reply: OutgoingReply) -> EmailMessage:
    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = extract_reply_address(reply.original_from)
    msg['Subject'] = reply_subject(reply.original_subject)
    msg['In-Reply-To'] = reply.original_message_id
    msg['References'] = reply.original_message_id
    msg['Date'] = formatdate(localtime=True)
    msg['Message-ID'] = make_msgid(domain=sender.rpartition('@')[2] or None)
    msg.set_content(reply.body)
    return msg


def send(settings: EmailSettings, vault: CredentialVault, reply: OutgoingReply,
         timeout: float | None = None) -> EmailMessage:
    creds = vault.decrypt_credentials(settings.credentials)
    host = creds.get('smtpHost')
    if not host:
        raise MailSendError('SMTP host is not configured')
    secure = bool(creds.get('smtpSecure', False))
    port = int(creds.get('smtpPort') or (465 if secure else 587))
    user = creds.get('username') or settings.email
    password = creds.get('password') or ''
    if timeout is None:
        timeout = get_settings().mail_timeout
    message = build_reply(settings.email, reply)
    try:
        if secure:
            smtp = smtplib.SMTP_SSL(host, port, timeout=timeout, context=ssl.create_default_context())
        else:
            smtp = smtplib.SMTP(host, port, timeout=timeout)
        with smtp:
            if not secure:
                smtp.ehlo()
                if smtp.has_extn('starttls'):
                    smtp.starttls(context=ssl.create_default_context())
                    smtp.ehlo()
            smtp.login(user, password)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("smtp_send_failed", extra={"error_type": type(e).__name__})
        raise MailSendError(f"SMTP delivery via {host}:{port} failed: {e}") from e
    logger.info("smtp_reply_sent", extra={"recipient": message["To"]})
    return message
