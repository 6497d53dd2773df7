from datetime import datetime
from pydantic import EmailStr, Field, computed_field
from typing import Optional, List, Literal

from .base import CamelModel

class EmailCredentials(CamelModel):
    username: Optional[str] = None
    password: str
    host: str
    port: int
    tls: Optional[bool] = None
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_secure: Optional[bool] = None

class EmailSettingsIn(CamelModel):
    email_provider: str
    email: EmailStr
    credentials: EmailCredentials
    active: Optional[bool] = None

class EmailSettingsOut(CamelModel):
    id: int
    user_id: int
    email_provider: str
    email: str
    active: Optional[bool] = True
    last_synced: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    credentials: Optional[str] = Field(default=None, exclude=True)

    @computed_field(alias='hasCredentials')
    @property
    def has_credentials(self) -> bool:
        return bool(self.credentials)

class EmailOut(CamelModel):
    id: int
    user_id: int
    message_id: str
    from_address: str = Field(alias='from')
    to_address: str = Field(alias='to')
    cc: Optional[str] = None
    subject: Optional[str] = None
    body: str
    html: Optional[str] = None
    date: datetime
    is_read: Optional[bool] = False
    needs_response: Optional[bool] = False
    response_generated: Optional[bool] = False
    folder_path: Optional[str] = None
    created_at: Optional[datetime] = None

class SuggestedAction(CamelModel):
    action: str
    priority: Literal['high', 'medium', 'low']

class EmailResponseOut(CamelModel):
    id: int
    email_id: int
    user_id: int
    draft_response: str
    suggested_actions: Optional[List[SuggestedAction]] = None
    status: Literal['draft', 'edited', 'sent']
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class EmailResponseUpdate(CamelModel):
    draft_response: Optional[str] = None
    # "sent" is only reachable through the send endpoint
    status: Optional[Literal['draft', 'edited']] = None

class SendResponseIn(CamelModel):
    edited_response: Optional[str] = None

class SyncOut(CamelModel):
    success: bool
    count: int
    message: str

class GenerateResponseOut(CamelModel):
    success: bool
    response: Optional[EmailResponseOut] = None
