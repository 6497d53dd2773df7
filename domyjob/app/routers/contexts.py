from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from typing import List, Optional
import logging

from ..core.config import get_settings
from ..models.user_model import User
from ..schemas.workspace import ContextCreate, ContextOut, ContextUpdate
from ..security.session_auth import get_current_user, require_owner
from ..services.pdf import PdfProcessingError, process_pdf
from ..services.storage import Storage, get_storage

router = APIRouter()
log = logging.getLogger(__name__)

PDF_TYPE = "application/pdf"


@router.get("/contexts", response_model=List[ContextOut])
def list_contexts(user: User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.get_contexts(user.id)


@router.post("/contexts", response_model=ContextOut, status_code=201)
def create_context(payload: ContextCreate, user: User = Depends(get_current_user),
                   storage: Storage = Depends(get_storage)):
    return storage.create_context(user_id=user.id, **payload.model_dump())


@router.put("/contexts/{context_id}", response_model=ContextOut)
def update_context(context_id: int, payload: ContextUpdate, user: User = Depends(get_current_user),
                   storage: Storage = Depends(get_storage)):
    require_owner(storage.get_context(context_id), user, "Context")
    return storage.update_context(context_id, **payload.model_dump(exclude_unset=True))


@router.delete("/contexts/{context_id}", status_code=204)
def delete_context(context_id: int, user: User = Depends(get_current_user),
                   storage: Storage = Depends(get_storage)):
    require_owner(storage.get_context(context_id), user, "Context")
    storage.delete_context(context_id)
    return Response(status_code=204)


@router.post("/upload", response_model=ContextOut, status_code=201)
async def upload_context(
    file: Optional[UploadFile] = File(None),
    name: Optional[str] = Form(None),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Store an uploaded PDF or text file as a new active context."""
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    limit = get_settings().upload_max_bytes
    data = await file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail="File too large")
    mimetype = (file.content_type or "").split(";")[0].strip().lower()
    page_count = None
    if mimetype == PDF_TYPE:
        try:
            result = process_pdf(data)
        except PdfProcessingError as e:
            raise HTTPException(status_code=400, detail=str(e))
        content, page_count = result.text, result.num_pages
    elif mimetype.startswith("text/"):
        content = data.decode("utf-8", errors="replace")
    else:
        raise HTTPException(status_code=400, detail="Only PDF and text files are supported")
    context = storage.create_context(
        user_id=user.id,
        name=name or file.filename or "Untitled",
        type=mimetype,
        content=content,
        file_size=len(data),
        page_count=page_count,
        active=True,
    )
    log.info("context_uploaded", extra={"user_id": user.id, "count": len(data)})
    return context
