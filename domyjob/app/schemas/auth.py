from typing import Optional

from pydantic import Field

from .base import CamelModel


class UserCreate(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(CamelModel):
    username: str
    password: str


class UserOut(CamelModel):
    id: int
    username: str
    email: Optional[str] = None
    name: Optional[str] = None
