from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from domyjob.app.db.database import Base
from domyjob.app.models import email_model, user_model, workspace_model  # noqa: F401
from domyjob.app.services import email_sync
from domyjob.app.services.mail_transport import EmailRecord, MailConnectionError, MailSendError
from domyjob.app.services.storage import DatabaseStorage, DuplicateEmailError

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def _record(message_id, subject='Please confirm budget by Friday', text='Can you confirm the budget by Friday?'):
    return EmailRecord(message_id=message_id, from_address='Alice <alice@example.com>', to_address='me@example.com',
                       cc='', subject=subject, date=NOW - timedelta(hours=2), text=text, html='')


@pytest.fixture
def user(mem):
    return mem.create_user(username='sam', password='x')


@pytest.fixture
def configured(mem, user, vault):
    return mem.create_email_settings(
        user_id=user.id, email_provider='gmail', email='me@example.com',
        credentials=vault.encrypt_credentials({'password': 'pw', 'host': 'imap.gmail.com', 'port': 993}),
    )


def test_budget_email_creates_one_draft(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = [_record('<b1@example.com>')]
    fake_llm.needs_response = {'budget': True}

    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)

    assert result.success and result.count == 1
    emails = mem.get_emails(user.id)
    assert len(emails) == 1
    assert emails[0].needs_response is True
    assert emails[0].response_generated is True
    responses = mem.get_email_responses(user.id)
    assert len(responses) == 1
    assert responses[0].status == 'draft'
    assert responses[0].suggested_actions == [{'action': 'Confirm budget', 'priority': 'high'}]
    assert mailbox.watermarks == [NOW - timedelta(days=3)]
    assert mailbox.closed == 1


def test_no_response_needed_means_no_draft(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = [_record('<n1@example.com>', subject='Newsletter', text='Weekly digest')]

    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)

    assert result.count == 1
    email = mem.get_emails(user.id)[0]
    assert email.needs_response is False
    assert email.response_generated is False
    assert mem.get_email_responses(user.id) == []
    assert fake_llm.draft_calls == []


def test_duplicates_within_a_pass_are_noops(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = [_record('<d1@example.com>'), _record('<d1@example.com>')]
    fake_llm.needs_response = {'budget': True}

    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)

    assert result.count == 1
    assert len(mem.get_emails(user.id)) == 1
    assert len(mem.get_email_responses(user.id)) == 1
    assert len(fake_llm.classify_calls) == 1


def test_second_pass_uses_watermark_and_skips_known(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = [_record('<w1@example.com>')]
    email_sync.sync_emails(mem, user.id, vault, now=NOW)
    assert mem.get_email_settings(user.id).last_synced == NOW

    later = NOW + timedelta(hours=1)
    result = email_sync.sync_emails(mem, user.id, vault, now=later)

    assert result.success and result.count == 0
    assert mailbox.watermarks[-1] == NOW
    assert mem.get_email_settings(user.id).last_synced == later
    assert len(fake_llm.classify_calls) == 1


def test_watermark_advances_with_nothing_new(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = []
    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)
    assert result.success and result.count == 0
    assert mem.get_email_settings(user.id).last_synced == NOW


def test_draft_failure_keeps_email(mailbox, mem, user, configured, vault, fake_llm):
    mailbox.records = [_record('<f1@example.com>')]
    fake_llm.needs_response = {'budget': True}
    fake_llm.draft = {'suggestedActions': []}

    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)

    assert result.success and result.count == 1
    email = mem.get_emails(user.id)[0]
    assert email.needs_response is True
    assert email.response_generated is False
    assert mem.get_email_responses(user.id) == []


def test_sync_without_settings(mem, user, vault):
    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)
    assert not result.success
    assert result.error == 'Email settings not found'


def test_sync_inactive_settings(mem, user, configured, vault):
    mem.update_email_settings(user.id, active=False)
    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)
    assert result.error == 'Email integration is not active'


def test_connect_failure_leaves_watermark(mailbox, mem, user, configured, vault):
    mailbox.connect_error = MailConnectionError('IMAP connection refused')
    result = email_sync.sync_emails(mem, user.id, vault, now=NOW)
    assert not result.success
    assert 'refused' in result.error
    assert mem.get_email_settings(user.id).last_synced is None


def test_wrong_key_fails_sync(mailbox, mem, user, configured):
    from domyjob.app.security.vault import CredentialVault
    result = email_sync.sync_emails(mem, user.id, CredentialVault('not-the-key'), now=NOW)
    assert not result.success


def _stored_draft(mem, user):
    email = mem.create_email(user_id=user.id, message_id='<s1@example.com>', from_address='Alice <alice@example.com>',
                             to_address='me@example.com', subject='Budget', body='Confirm?', date=NOW)
    return email, mem.create_email_response(email_id=email.id, user_id=user.id, draft_response='Original draft',
                                            suggested_actions=[], status='draft')


def test_send_keeps_draft_without_edit(mailbox, mem, user, configured, vault):
    email, response = _stored_draft(mem, user)

    result = email_sync.send_email_response(mem, user.id, response.id, vault)

    assert result.success
    stored = mem.get_email_response(response.id)
    assert stored.status == 'sent'
    assert stored.sent_at is not None
    assert stored.draft_response == 'Original draft'
    assert mailbox.sent[0].body == 'Original draft'
    assert mailbox.sent[0].original_message_id == '<s1@example.com>'


def test_send_with_edit_replaces_draft(mailbox, mem, user, configured, vault):
    _, response = _stored_draft(mem, user)

    email_sync.send_email_response(mem, user.id, response.id, vault, edited_response='Edited body')

    assert mem.get_email_response(response.id).draft_response == 'Edited body'
    assert mailbox.sent[0].body == 'Edited body'


def test_send_failure_keeps_status(mailbox, mem, user, configured, vault):
    mailbox.send_error = MailSendError('SMTP delivery failed')
    _, response = _stored_draft(mem, user)

    result = email_sync.send_email_response(mem, user.id, response.id, vault)

    assert not result.success
    assert result.error == 'SMTP delivery failed'
    assert mem.get_email_response(response.id).status == 'draft'


def test_send_requires_settings(mem, user, vault):
    _, response = _stored_draft(mem, user)
    result = email_sync.send_email_response(mem, user.id, response.id, vault)
    assert result.error == 'Email settings not found'


def test_send_unknown_response(mem, user, vault):
    assert email_sync.send_email_response(mem, user.id, 999, vault).error == 'Email response not found'


def test_generate_response_for_foreign_email(mem, user, fake_llm):
    other = mem.create_user(username='other', password='x')
    email = mem.create_email(user_id=other.id, message_id='<o1@example.com>', from_address='a@example.com',
                             to_address='b@example.com', subject='Hi', body='Hello', date=NOW)
    with pytest.raises(LookupError):
        email_sync.generate_email_response(mem, user.id, email.id)


def test_compute_watermark_handles_naive_timestamps():
    naive = datetime(2026, 10, 18, 8, 0)
    assert email_sync.compute_watermark(naive, NOW) == naive.replace(tzinfo=timezone.utc)
    assert email_sync.compute_watermark(None, NOW) == NOW - timedelta(days=3)


class StaleLookupStorage(DatabaseStorage):
    """Misses the next ``stale`` message-id lookups, as when another sync inserts concurrently."""

    stale = 0

    def get_email_by_message_id(self, message_id):
        if self.stale:
            self.stale -= 1
            return None
        return super().get_email_by_message_id(message_id)


@pytest.fixture
def sql_storage():
    engine = create_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    try:
        yield StaleLookupStorage(session)
    finally:
        session.close()


def _email_fields(user_id, message_id='<r@example.com>'):
    return dict(user_id=user_id, message_id=message_id, from_address='Alice <alice@example.com>',
                to_address='me@example.com', subject='Please confirm budget', body='Confirm?', date=NOW)


def test_create_email_twice_raises_duplicate(sql_storage):
    user = sql_storage.create_user(username='sam', password='x')
    sql_storage.create_email(**_email_fields(user.id))

    with pytest.raises(DuplicateEmailError) as exc:
        sql_storage.create_email(**_email_fields(user.id))

    assert exc.value.message_id == '<r@example.com>'
    assert len(sql_storage.get_emails(user.id)) == 1


def test_create_email_reraises_other_integrity_errors(sql_storage):
    user = sql_storage.create_user(username='sam', password='x')
    with pytest.raises(IntegrityError):
        sql_storage.create_email(**{**_email_fields(user.id), 'body': None})
    assert sql_storage.get_emails(user.id) == []


def test_lost_insert_race_is_a_noop(mailbox, sql_storage, vault, fake_llm):
    user = sql_storage.create_user(username='sam', password='x')
    sql_storage.create_email_settings(
        user_id=user.id, email_provider='gmail', email='me@example.com',
        credentials=vault.encrypt_credentials({'password': 'pw', 'host': 'imap.gmail.com', 'port': 993}),
    )
    sql_storage.create_email(**_email_fields(user.id, '<race@example.com>'))
    mailbox.records = [_record('<race@example.com>')]
    fake_llm.needs_response = {'budget': True}
    sql_storage.stale = 1

    result = email_sync.sync_emails(sql_storage, user.id, vault, now=NOW)

    assert result.success and result.count == 0
    assert len(sql_storage.get_emails(user.id)) == 1
    assert sql_storage.get_email_responses(user.id) == []
    assert fake_llm.draft_calls == []
    last_synced = sql_storage.get_email_settings(user.id).last_synced
    assert last_synced.replace(tzinfo=timezone.utc) == NOW
