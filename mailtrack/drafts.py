"""Manual draft routes.

Drafts are hand-written notes about mails. New drafts start in the
unplaced pool and are later dropped onto a contact.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_current_user
from .database import get_db
from .logger import get_logger
from .models import User

router = APIRouter(prefix="/manual-drafts", tags=["manual-drafts"])
logger = get_logger(__name__)


@router.get("", response_model=List[schemas.ManualDraftOut])
def list_drafts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return every draft of the current user, ordered by contact then position."""
    return crud.list_drafts(db, current_user)


@router.post("", response_model=schemas.ManualDraftOut, status_code=201)
def create_draft(
    draft_in: schemas.ManualDraftCreate | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Append a new draft to the unplaced pool."""
    draft = crud.create_draft(db, draft_in or schemas.ManualDraftCreate(), current_user)
    logger.info("draft_created", user_id=current_user.id, draft_id=draft.id)
    return draft


@router.post("/reorder", response_model=schemas.OkOut)
def reorder_drafts(
    payload: schemas.ReorderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    crud.reorder_drafts(db, current_user, payload.ids)
    logger.info("drafts_reordered", user_id=current_user.id, count=len(payload.ids))
    return {"ok": True}


@router.patch("/{draft_id}", response_model=schemas.ManualDraftOut)
def patch_draft(
    draft_id: str,
    changes: schemas.ManualDraftUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Partially update a draft.

    Setting ``contactId`` places the draft on that contact; ``null``
    returns it to the unplaced pool.

    Raises:
        HTTPException: If the draft or the target contact is not found.
    """
    draft = crud.get_draft(db, draft_id, current_user)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    return crud.update_draft(
        db, draft, changes.model_dump(exclude_unset=True), current_user
    )


@router.delete("/{draft_id}", response_model=schemas.OkOut)
def remove_draft(
    draft_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    draft = crud.get_draft(db, draft_id, current_user)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    crud.delete_draft(db, draft)
    logger.info("draft_deleted", user_id=current_user.id, draft_id=draft_id)
    return {"ok": True}
