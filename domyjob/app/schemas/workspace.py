from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel

TaskStatus = Literal['pending', 'in_progress', 'completed']


class ContextCreate(CamelModel):
    name: str = Field(min_length=1)
    type: str = 'text'
    content: str
    file_size: Optional[int] = None
    page_count: Optional[int] = None
    active: bool = True


class ContextUpdate(CamelModel):
    name: Optional[str] = None
    type: Optional[str] = None
    content: Optional[str] = None
    active: Optional[bool] = None


class ContextOut(CamelModel):
    id: int
    user_id: int
    name: str
    type: str
    content: str
    file_size: Optional[int] = None
    page_count: Optional[int] = None
    created_at: Optional[datetime] = None
    active: Optional[bool] = True


class TaskCreate(CamelModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = 'pending'


class TaskUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None


class TaskOut(CamelModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class ConversationCreate(CamelModel):
    title: str = Field(min_length=1)


class ConversationOut(CamelModel):
    id: int
    user_id: int
    title: str
    created_at: Optional[datetime] = None


class MessageCreate(CamelModel):
    content: str = Field(min_length=1)


class MessageOut(CamelModel):
    id: int
    conversation_id: int
    content: str
    role: str
    created_at: Optional[datetime] = None


class LearningProgressOut(CamelModel):
    id: int
    user_id: int
    category: str
    progress: int


class DraftEmailRequest(CamelModel):
    subject: str
    purpose: str
    details: str
    tone: str


class SummarizeRequest(CamelModel):
    context_id: Optional[int] = None
    text: Optional[str] = None


class ScreenshotProcessRequest(CamelModel):
    data_url: str = Field(min_length=1)


class ScreenshotSaveRequest(CamelModel):
    name: str = Field(min_length=1)
    content: str = Field(min_length=1)
