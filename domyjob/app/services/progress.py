from typing import List

from ..models.workspace_model import LearningProgress
from .storage import Storage

MAX_PROGRESS = 100

EMAIL_DRAFTING = "Email Drafting"
DOCUMENTATION_ANALYSIS = "Documentation Analysis"
CODE_UNDERSTANDING = "Code Understanding"
EMAIL_HANDLING = "Email Handling"

DEFAULT_CATEGORIES = [
    (EMAIL_DRAFTING, 10),
    (DOCUMENTATION_ANALYSIS, 5),
    (CODE_UNDERSTANDING, 0),
]


def bump(storage: Storage, user_id: int, category: str, amount: int) -> LearningProgress:
    current = storage.get_learning_progress_by_category(user_id, category)
    value = min(MAX_PROGRESS, (current.progress if current else 0) + amount)
    return storage.update_learning_progress(user_id, category, value)


def progress_with_defaults(storage: Storage, user_id: int) -> List[LearningProgress]:
    rows = storage.get_learning_progress(user_id)
    if rows:
        return rows
    return [storage.update_learning_progress(user_id, cat, value) for cat, value in DEFAULT_CATEGORIES]
