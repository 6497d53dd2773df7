"""Persistence gateway.

``Storage`` is the interface every service and router talks to. Two
implementations exist: ``DatabaseStorage`` (SQLAlchemy session, used by the
API) and ``MemStorage`` in ``memory_storage.py`` (plain dicts, used as a test
double). Both hand back the ORM model classes, so callers never care which
one they got.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.database import get_db
from ..models.email_model import Email, EmailResponse, EmailSettings
from ..models.user_model import User
from ..models.workspace_model import Context, Conversation, LearningProgress, Message, Task


class DuplicateEmailError(Exception):
    """An email with the same provider message-id is already stored."""

    def __init__(self, message_id: str):
        super().__init__(f"email already stored: {message_id}")
        self.message_id = message_id


class DuplicateUserError(Exception):
    pass


class Storage(ABC):
    # Users
    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def create_user(self, **fields: Any) -> User: ...

    # Email settings
    @abstractmethod
    def get_email_settings(self, user_id: int) -> Optional[EmailSettings]: ...

    @abstractmethod
    def create_email_settings(self, **fields: Any) -> EmailSettings: ...

    @abstractmethod
    def update_email_settings(self, user_id: int, **fields: Any) -> Optional[EmailSettings]: ...

    # Emails
    @abstractmethod
    def get_emails(self, user_id: int, needs_response: Optional[bool] = None,
                   limit: Optional[int] = None, offset: int = 0) -> List[Email]: ...

    @abstractmethod
    def get_email(self, email_id: int) -> Optional[Email]: ...

    @abstractmethod
    def get_email_by_message_id(self, message_id: str) -> Optional[Email]: ...

    @abstractmethod
    def create_email(self, **fields: Any) -> Email:
        """Insert an email. Raises DuplicateEmailError if the message-id exists."""

    @abstractmethod
    def update_email(self, email_id: int, **fields: Any) -> Optional[Email]: ...

    # Email responses
    @abstractmethod
    def get_email_responses(self, user_id: int, email_id: Optional[int] = None,
                            status: Optional[str] = None) -> List[EmailResponse]:
        """Newest first."""

    @abstractmethod
    def get_email_response(self, response_id: int) -> Optional[EmailResponse]: ...

    @abstractmethod
    def create_email_response(self, **fields: Any) -> EmailResponse: ...

    @abstractmethod
    def update_email_response(self, response_id: int, **fields: Any) -> Optional[EmailResponse]: ...

    # Contexts
    @abstractmethod
    def get_contexts(self, user_id: int) -> List[Context]: ...

    @abstractmethod
    def get_context(self, context_id: int) -> Optional[Context]: ...

    @abstractmethod
    def create_context(self, **fields: Any) -> Context: ...

    @abstractmethod
    def update_context(self, context_id: int, **fields: Any) -> Optional[Context]: ...

    @abstractmethod
    def delete_context(self, context_id: int) -> bool: ...

    def get_active_contexts(self, user_id: int) -> List[Context]:
        return [c for c in self.get_contexts(user_id) if c.active]

    # Tasks
    @abstractmethod
    def get_tasks(self, user_id: int) -> List[Task]: ...

    @abstractmethod
    def get_task(self, task_id: int) -> Optional[Task]: ...

    @abstractmethod
    def create_task(self, **fields: Any) -> Task: ...

    @abstractmethod
    def update_task(self, task_id: int, **fields: Any) -> Optional[Task]: ...

    # Conversations / messages
    @abstractmethod
    def get_conversations(self, user_id: int) -> List[Conversation]: ...

    @abstractmethod
    def get_conversation(self, conversation_id: int) -> Optional[Conversation]: ...

    @abstractmethod
    def create_conversation(self, **fields: Any) -> Conversation: ...

    @abstractmethod
    def get_messages(self, conversation_id: int) -> List[Message]: ...

    @abstractmethod
    def create_message(self, **fields: Any) -> Message: ...

    # Learning progress
    @abstractmethod
    def get_learning_progress(self, user_id: int) -> List[LearningProgress]: ...

    @abstractmethod
    def get_learning_progress_by_category(self, user_id: int, category: str) -> Optional[LearningProgress]: ...

    @abstractmethod
    def update_learning_progress(self, user_id: int, category: str, progress: int) -> LearningProgress:
        """Set (upsert) the progress value of one category."""


class DatabaseStorage(Storage):
    def __init__(self, db: Session):
        self.db = db

    def _add(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def _update(self, model, pk: int, fields: dict):
        obj = self.db.get(model, pk)
        if obj is None:
            return None
        for k, v in fields.items():
            setattr(obj, k, v)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def get_user(self, user_id: int) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def create_user(self, **fields: Any) -> User:
        try:
            return self._add(User(**fields))
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateUserError(fields.get('username')) from e

    def get_email_settings(self, user_id: int) -> Optional[EmailSettings]:
        return self.db.query(EmailSettings).filter(EmailSettings.user_id == user_id).first()

    def create_email_settings(self, **fields: Any) -> EmailSettings:
        fields.setdefault('last_synced', None)
        return self._add(EmailSettings(**fields))

    def update_email_settings(self, user_id: int, **fields: Any) -> Optional[EmailSettings]:
        settings = self.get_email_settings(user_id)
        if settings is None:
            return None
        for k, v in fields.items():
            setattr(settings, k, v)
        settings.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(settings)
        return settings

    def get_emails(self, user_id: int, needs_response: Optional[bool] = None,
                   limit: Optional[int] = None, offset: int = 0) -> List[Email]:
        q = self.db.query(Email).filter(Email.user_id == user_id)
        if needs_response is not None:
            q = q.filter(Email.needs_response == needs_response)
        q = q.order_by(Email.date.desc(), Email.id.desc())
        if limit is not None:
            q = q.offset(offset).limit(limit)
        return q.all()

    def get_email(self, email_id: int) -> Optional[Email]:
        return self.db.get(Email, email_id)

    def get_email_by_message_id(self, message_id: str) -> Optional[Email]:
        return self.db.query(Email).filter(Email.message_id == message_id).first()

    def create_email(self, **fields: Any) -> Email:
        try:
            return self._add(Email(**fields))
        except IntegrityError as e:
            self.db.rollback()
            message_id = fields.get('message_id')
            if message_id and self.get_email_by_message_id(message_id) is not None:
                raise DuplicateEmailError(message_id) from e
            raise

    def update_email(self, email_id: int, **fields: Any) -> Optional[Email]:
        return self._update(Email, email_id, fields)

    def get_email_responses(self, user_id: int, email_id: Optional[int] = None,
                            status: Optional[str] = None) -> List[EmailResponse]:
        q = self.db.query(EmailResponse).filter(EmailResponse.user_id == user_id)
        if email_id is not None:
            q = q.filter(EmailResponse.email_id == email_id)
        if status is not None:
            q = q.filter(EmailResponse.status == status)
        return q.order_by(EmailResponse.created_at.desc(), EmailResponse.id.desc()).all()

    def get_email_response(self, response_id: int) -> Optional[EmailResponse]:
        return self.db.get(EmailResponse, response_id)

    def create_email_response(self, **fields: Any) -> EmailResponse:
        fields.setdefault('sent_at', None)
        return self._add(EmailResponse(**fields))

    def update_email_response(self, response_id: int, **fields: Any) -> Optional[EmailResponse]:
        fields.setdefault('updated_at', datetime.now(timezone.utc))
        return self._update(EmailResponse, response_id, fields)

    def get_contexts(self, user_id: int) -> List[Context]:
        return self.db.query(Context).filter(Context.user_id == user_id).order_by(Context.id).all()

    def get_context(self, context_id: int) -> Optional[Context]:
        return self.db.get(Context, context_id)

    def create_context(self, **fields: Any) -> Context:
        return self._add(Context(**fields))

    def update_context(self, context_id: int, **fields: Any) -> Optional[Context]:
        return self._update(Context, context_id, fields)

    def delete_context(self, context_id: int) -> bool:
        removed = self.db.query(Context).filter(Context.id == context_id).delete()
        self.db.commit()
        return bool(removed)

    def get_tasks(self, user_id: int) -> List[Task]:
        return self.db.query(Task).filter(Task.user_id == user_id).order_by(Task.id).all()

    def get_task(self, task_id: int) -> Optional[Task]:
        return self.db.get(Task, task_id)

    def create_task(self, **fields: Any) -> Task:
        return self._add(Task(**fields))

    def update_task(self, task_id: int, **fields: Any) -> Optional[Task]:
        return self._update(Task, task_id, fields)

    def get_conversations(self, user_id: int) -> List[Conversation]:
        return self.db.query(Conversation).filter(Conversation.user_id == user_id).order_by(Conversation.id).all()

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        return self.db.get(Conversation, conversation_id)

    def create_conversation(self, **fields: Any) -> Conversation:
        return self._add(Conversation(**fields))

    def get_messages(self, conversation_id: int) -> List[Message]:
        return self.db.query(Message).filter(Message.conversation_id == conversation_id).order_by(Message.id).all()

    def create_message(self, **fields: Any) -> Message:
        return self._add(Message(**fields))

    def get_learning_progress(self, user_id: int) -> List[LearningProgress]:
        return self.db.query(LearningProgress).filter(LearningProgress.user_id == user_id).order_by(LearningProgress.id).all()

    def get_learning_progress_by_category(self, user_id: int, category: str) -> Optional[LearningProgress]:
        return self.db.query(LearningProgress).filter(
            LearningProgress.user_id == user_id, LearningProgress.category == category
        ).first()

    def update_learning_progress(self, user_id: int, category: str, progress: int) -> LearningProgress:
        existing = self.get_learning_progress_by_category(user_id, category)
        if existing:
            existing.progress = progress
            self.db.commit()
            self.db.refresh(existing)
            return existing
        return self._add(LearningProgress(user_id=user_id, category=category, progress=progress))


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return DatabaseStorage(db)
