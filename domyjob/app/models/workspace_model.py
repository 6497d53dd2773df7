from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean, ForeignKey, UniqueConstraint
from ..db.database import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class Context(Base):
    __tablename__ = 'contexts'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # application/pdf, text/plain, text, screenshot ...
    content = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    page_count = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=_utcnow)
    active = Column(Boolean, default=True)


class Task(Base):
    __tablename__ = 'tasks'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String, default='pending', nullable=False)  # pending | in_progress | completed
    created_at = Column(DateTime, default=_utcnow)


class Conversation(Base):
    __tablename__ = 'conversations'
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    title = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow)


class Message(Base):
    __tablename__ = 'messages'
    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(Integer, ForeignKey('conversations.id'), nullable=False, index=True)
    content = Column(Text, nullable=False)
    role = Column(String, nullable=False)  # user | assistant
    created_at = Column(DateTime, default=_utcnow)


class LearningProgress(Base):
    __tablename__ = 'learning_progress'
    __table_args__ = (UniqueConstraint('user_id', 'category', name='uq_learning_progress_user_category'),)
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    category = Column(String, nullable=False)
    progress = Column(Integer, nullable=False, default=0)
