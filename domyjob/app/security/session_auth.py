from fastapi import Depends, HTTPException, Request
from werkzeug.security import check_password_hash, generate_password_hash

from ..models.user_model import User
from ..services.storage import Storage, get_storage

SESSION_USER_KEY = "user_id"


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(stored_hash: str, password: str) -> bool:
    return check_password_hash(stored_hash, password)


def login_session(request: Request, user: User) -> None:
    request.session.clear()
    request.session[SESSION_USER_KEY] = user.id


def logout_session(request: Request) -> None:
    request.session.clear()


def get_current_user(request: Request, storage: Storage = Depends(get_storage)) -> User:
    """Resolve the signed-cookie session to a user, 401 otherwise."""
    user_id = request.session.get(SESSION_USER_KEY)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = storage.get_user(user_id)
    if user is None:
        # stale cookie for a deleted user
        request.session.clear()
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_owner(obj, user: User, label: str):
    if obj is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    if obj.user_id != user.id:
        raise HTTPException(status_code=403, detail="Forbidden")
    return obj
