import pytest

from domyjob.app.models.email_model import Email
from domyjob.app.models.workspace_model import Context
from domyjob.app.services import auto_responder, llm_client
from domyjob.app.services.llm_client import LLMError


def _reply_with(monkeypatch, payload):
    seen = []

    def fake(messages, **kwargs):
        seen.append(messages)
        if isinstance(payload, Exception):
            raise payload
        return payload

    monkeypatch.setattr(llm_client, 'chat_json', fake)
    return seen


@pytest.mark.parametrize('payload,expected', [
    ({'needsResponse': True, 'confidence': 0.95}, True),
    ({'needsResponse': True, 'confidence': 0.7}, False),
    ({'needsResponse': True, 'confidence': 0.5}, False),
    ({'needsResponse': False, 'confidence': 0.99}, False),
    ({'needsResponse': 'yes', 'confidence': 0.99}, False),
    ({'needsResponse': True, 'confidence': 'high'}, False),
    ({}, False),
])
def test_classification_threshold(monkeypatch, payload, expected):
    _reply_with(monkeypatch, payload)
    assert auto_responder.classify_needs_response('Can you confirm?', 'Budget') is expected


def test_classification_fails_safe(monkeypatch):
    _reply_with(monkeypatch, LLMError('timeout'))
    assert auto_responder.classify_needs_response('Can you confirm?', 'Budget') is False


def test_classification_truncates_long_bodies(monkeypatch):
    seen = _reply_with(monkeypatch, {'needsResponse': False, 'confidence': 0.1})
    auto_responder.classify_needs_response('x' * 6000, 'Long')
    prompt = seen[0][1]['content']
    assert '... [Email truncated]' in prompt
    assert 'x' * 5001 not in prompt


def _email():
    return Email(id=1, user_id=1, message_id='<m1@example.com>', from_address='alice@example.com',
                 to_address='me@example.com', subject='Budget', body='Please confirm the budget.')


def test_draft_normalizes_actions(monkeypatch):
    _reply_with(monkeypatch, {
        'draftResponse': '  Confirmed.  ',
        'suggestedActions': [
            {'action': 'Reply today', 'priority': 'HIGH'},
            {'action': 'Check numbers', 'priority': 'urgent'},
            {'priority': 'low'},
            'not an action',
            {'action': 'Book meeting', 'priority': 'low'},
            {'action': 'One too many', 'priority': 'low'},
        ],
    })
    result = auto_responder.draft_response(_email(), [])
    assert result.draft_response == 'Confirmed.'
    assert result.suggested_actions == [
        {'action': 'Reply today', 'priority': 'high'},
        {'action': 'Check numbers', 'priority': 'medium'},
        {'action': 'Book meeting', 'priority': 'low'},
    ]


def test_draft_without_text_raises(monkeypatch):
    _reply_with(monkeypatch, {'suggestedActions': []})
    with pytest.raises(LLMError):
        auto_responder.draft_response(_email(), [])


def test_draft_prompt_includes_active_contexts(monkeypatch):
    seen = _reply_with(monkeypatch, {'draftResponse': 'ok'})
    contexts = [Context(name=f'doc{i}', content='c' * 1500) for i in range(7)]
    auto_responder.draft_response(_email(), contexts)
    prompt = seen[0][1]['content']
    assert '--- doc4 ---' in prompt
    assert '--- doc5 ---' not in prompt
    assert '... [Content truncated]' in prompt
    assert 'Subject: Budget' in prompt


def test_build_context_empty():
    assert auto_responder.build_context([]) == ''
