from fastapi import APIRouter, Depends
from typing import List

from ..models.user_model import User
from ..schemas.workspace import LearningProgressOut
from ..security.session_auth import get_current_user
from ..services.progress import progress_with_defaults
from ..services.storage import Storage, get_storage

router = APIRouter()


@router.get("/learning-progress", response_model=List[LearningProgressOut])
def learning_progress(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return progress_with_defaults(storage, user.id)
