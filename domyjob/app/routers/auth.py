from fastapi import APIRouter, Depends, HTTPException, Request
import logging

from ..models.user_model import User
from ..schemas.auth import LoginRequest, UserCreate, UserOut
from ..security.session_auth import (
    get_current_user,
    hash_password,
    login_session,
    logout_session,
    verify_password,
)
from ..services.storage import DuplicateUserError, Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: UserCreate, request: Request, storage: Storage = Depends(get_storage)):
    if storage.get_user_by_username(payload.username):
        raise HTTPException(status_code=400, detail="Username already exists")
    try:
        user = storage.create_user(
            username=payload.username,
            password=hash_password(payload.password),
            email=payload.email,
            name=payload.name,
        )
    except DuplicateUserError:
        raise HTTPException(status_code=400, detail="Username already exists")
    login_session(request, user)
    log.info("user_registered", extra={"user_id": user.id})
    return user


@router.post("/login", response_model=UserOut)
def login(payload: LoginRequest, request: Request, storage: Storage = Depends(get_storage)):
    user = storage.get_user_by_username(payload.username)
    if user is None or not verify_password(user.password, payload.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    login_session(request, user)
    return user


@router.post("/logout")
def logout(request: Request):
    logout_session(request)
    return {"success": True}


@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user
