from fastapi import APIRouter, Depends
from typing import List

from ..models.user_model import User
from ..schemas.workspace import TaskCreate, TaskOut, TaskUpdate
from ..security.session_auth import get_current_user, require_owner
from ..services.storage import Storage, get_storage

router = APIRouter()


@router.get("", response_model=List[TaskOut])
def list_tasks(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.get_tasks(user.id)


@router.post("", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.create_task(user_id=user.id, **payload.model_dump())


@router.put("/{task_id}", response_model=TaskOut)
def update_task(task_id: int, payload: TaskUpdate, user: User = Depends(get_current_user),
                storage: Storage = Depends(get_storage)):
    require_owner(storage.get_task(task_id), user, "Task")
    return storage.update_task(task_id, **payload.model_dump(exclude_unset=True))
