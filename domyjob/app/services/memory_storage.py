"""In-memory ``Storage`` (dict per entity, incrementing ids). Used as a test double."""
from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, List, Optional

from ..models.email_model import Email, EmailResponse, EmailSettings
from ..models.user_model import User
from ..models.workspace_model import Context, Conversation, LearningProgress, Message, Task
from .storage import DuplicateEmailError, DuplicateUserError, Storage


def _now():
    return datetime.now(timezone.utc)


class MemStorage(Storage):
    def __init__(self):
        self._tables: Dict[type, Dict[int, Any]] = {
            m: {} for m in (User, EmailSettings, Email, EmailResponse, Context, Task,
                            Conversation, Message, LearningProgress)
        }
        self._ids = {m: count(1) for m in self._tables}

    def _insert(self, model, defaults: dict, fields: dict):
        values = {**defaults, **fields}
        obj = model(id=next(self._ids[model]), **values)
        self._tables[model][obj.id] = obj
        return obj

    def _update(self, model, pk: int, fields: dict):
        obj = self._tables[model].get(pk)
        if obj is None:
            return None
        for k, v in fields.items():
            setattr(obj, k, v)
        return obj

    def _rows(self, model) -> List[Any]:
        return list(self._tables[model].values())

    def get_user(self, user_id: int) -> Optional[User]:
        return self._tables[User].get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self._rows(User) if u.username == username), None)

    def create_user(self, **fields: Any) -> User:
        if self.get_user_by_username(fields.get('username')):
            raise DuplicateUserError(fields.get('username'))
        return self._insert(User, {'email': None, 'name': None}, fields)

    def get_email_settings(self, user_id: int) -> Optional[EmailSettings]:
        return next((s for s in self._rows(EmailSettings) if s.user_id == user_id), None)

    def create_email_settings(self, **fields: Any) -> EmailSettings:
        if self.get_email_settings(fields.get('user_id')):
            raise ValueError(f"email settings already exist for user {fields.get('user_id')}")
        now = _now()
        defaults = {'active': True, 'last_synced': None, 'created_at': now, 'updated_at': now}
        return self._insert(EmailSettings, defaults, fields)

    def update_email_settings(self, user_id: int, **fields: Any) -> Optional[EmailSettings]:
        settings = self.get_email_settings(user_id)
        if settings is None:
            return None
        return self._update(EmailSettings, settings.id, {**fields, 'updated_at': _now()})

    def get_emails(self, user_id: int, needs_response: Optional[bool] = None,
                   limit: Optional[int] = None, offset: int = 0) -> List[Email]:
        rows = [e for e in self._rows(Email) if e.user_id == user_id]
        if needs_response is not None:
            rows = [e for e in rows if bool(e.needs_response) == needs_response]
        rows.sort(key=lambda e: (e.date, e.id), reverse=True)
        if limit is not None:
            rows = rows[offset:offset + limit]
        return rows

    def get_email(self, email_id: int) -> Optional[Email]:
        return self._tables[Email].get(email_id)

    def get_email_by_message_id(self, message_id: str) -> Optional[Email]:
        return next((e for e in self._rows(Email) if e.message_id == message_id), None)

    def create_email(self, **fields: Any) -> Email:
        if self.get_email_by_message_id(fields.get('message_id')):
            raise DuplicateEmailError(fields.get('message_id'))
        defaults = {
            'cc': None, 'subject': None, 'html': None, 'is_read': False,
            'needs_response': False, 'response_generated': False,
            'folder_path': None, 'created_at': _now(),
        }
        return self._insert(Email, defaults, fields)

    def update_email(self, email_id: int, **fields: Any) -> Optional[Email]:
        return self._update(Email, email_id, fields)

    def get_email_responses(self, user_id: int, email_id: Optional[int] = None,
                            status: Optional[str] = None) -> List[EmailResponse]:
        rows = [r for r in self._rows(EmailResponse) if r.user_id == user_id]
        if email_id is not None:
            rows = [r for r in rows if r.email_id == email_id]
        if status is not None:
            rows = [r for r in rows if r.status == status]
        rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return rows

    def get_email_response(self, response_id: int) -> Optional[EmailResponse]:
        return self._tables[EmailResponse].get(response_id)

    def create_email_response(self, **fields: Any) -> EmailResponse:
        now = _now()
        defaults = {'suggested_actions': None, 'status': 'draft', 'sent_at': None,
                    'created_at': now, 'updated_at': now}
        return self._insert(EmailResponse, defaults, fields)

    def update_email_response(self, response_id: int, **fields: Any) -> Optional[EmailResponse]:
        return self._update(EmailResponse, response_id, {**fields, 'updated_at': _now()})

    def get_contexts(self, user_id: int) -> List[Context]:
        return [c for c in self._rows(Context) if c.user_id == user_id]

    def get_context(self, context_id: int) -> Optional[Context]:
        return self._tables[Context].get(context_id)

    def create_context(self, **fields: Any) -> Context:
        defaults = {'file_size': None, 'page_count': None, 'active': True, 'created_at': _now()}
        return self._insert(Context, defaults, fields)

    def update_context(self, context_id: int, **fields: Any) -> Optional[Context]:
        return self._update(Context, context_id, fields)

    def delete_context(self, context_id: int) -> bool:
        return self._tables[Context].pop(context_id, None) is not None

    def get_tasks(self, user_id: int) -> List[Task]:
        return [t for t in self._rows(Task) if t.user_id == user_id]

    def get_task(self, task_id: int) -> Optional[Task]:
        return self._tables[Task].get(task_id)

    def create_task(self, **fields: Any) -> Task:
        return self._insert(Task, {'description': None, 'status': 'pending', 'created_at': _now()}, fields)

    def update_task(self, task_id: int, **fields: Any) -> Optional[Task]:
        return self._update(Task, task_id, fields)

    def get_conversations(self, user_id: int) -> List[Conversation]:
        return [c for c in self._rows(Conversation) if c.user_id == user_id]

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return self._tables[Conversation].get(conversation_id)

    def create_conversation(self, **fields: Any) -> Conversation:
        return self._insert(Conversation, {'created_at': _now()}, fields)

    def get_messages(self, conversation_id: int) -> List[Message]:
        return [m for m in self._rows(Message) if m.conversation_id == conversation_id]

    def create_message(self, **fields: Any) -> Message:
        return self._insert(Message, {'created_at': _now()}, fields)

    def get_learning_progress(self, user_id: int) -> List[LearningProgress]:
        return [p for p in self._rows(LearningProgress) if p.user_id == user_id]

    def get_learning_progress_by_category(self, user_id: int, category: str) -> Optional[LearningProgress]:
        return next((p for p in self.get_learning_progress(user_id) if p.category == category), None)

    def update_learning_progress(self, user_id: int, category: str, progress: int) -> LearningProgress:
        existing = self.get_learning_progress_by_category(user_id, category)
        if existing:
            existing.progress = progress
            return existing
        return self._insert(LearningProgress, {}, {'user_id': user_id, 'category': category, 'progress': progress})
