"""Dashboard routes: the contact overview and server-side drop handling."""

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_current_user
from .core import get_settings
from .database import get_db
from .logger import get_logger
from .models import User
from .reorder import move_item
from .staleness import MAX_THRESHOLD_DAYS, MIN_THRESHOLD_DAYS, classify, last_sent_at
from .ui_state import (
    ContactMove,
    DraftPlace,
    InvalidDragPayload,
    MailReorder,
    SortMode,
    decode_drag_payload,
    sort_contacts,
)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])
logger = get_logger(__name__)


@router.get("", response_model=List[schemas.DashboardContactOut])
def get_dashboard(
    q: str | None = Query(None),
    sort: SortMode = Query(SortMode.CUSTOM),
    priority_after_days: int | None = Query(
        None,
        alias="priorityAfterDays",
        ge=MIN_THRESHOLD_DAYS,
        le=MAX_THRESHOLD_DAYS,
    ),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Contacts with their sent mail and attachments, annotated with staleness.

    Args:
        q (str | None): Optional name/email search.
        sort (SortMode): Display order; never persisted.
        priority_after_days (int | None): Staleness threshold in days.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        list[DashboardContactOut]: Contacts in the requested order.
    """
    threshold = priority_after_days or get_settings().PRIORITY_AFTER_DAYS
    now = datetime.now(timezone.utc)
    contacts = sort_contacts(
        crud.get_dashboard_contacts(db, current_user, q=q), sort, threshold, now
    )

    result = []
    for contact in contacts:
        bucket = classify(last_sent_at(contact), threshold, now)
        item = schemas.DashboardContactOut.model_validate(contact)
        item.staleness = bucket.value
        item.color = bucket.color
        result.append(item)
    return result


@router.post("/drop", response_model=schemas.DropOut)
def drop(
    request: schemas.DropRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Apply a drag-and-drop gesture.

    Contact moves and draft placements are persisted. Mail reorders only
    return the new order of mail ids for the contact.

    Raises:
        HTTPException: 400 for an undecodable payload or a mismatched
            target, 404 for anything not owned by the user.
    """
    try:
        payload = decode_drag_payload(request.payload)
    except InvalidDragPayload as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    if isinstance(payload, ContactMove):
        contact = crud.get_contact(db, payload.contact_id, current_user)
        if not contact:
            raise HTTPException(status_code=404, detail="Contact not found")
        contact = crud.move_contact(db, contact, request.target_id, current_user)
        logger.info(
            "contact_moved",
            user_id=current_user.id,
            contact_id=contact.id,
            category_id=request.target_id,
        )
        return {"kind": "contact", "contact": contact}

    if isinstance(payload, DraftPlace):
        draft = crud.get_draft(db, payload.draft_id, current_user)
        if not draft:
            raise HTTPException(status_code=404, detail="Draft not found")
        if request.target_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A draft must be dropped onto a contact",
            )
        contact = crud.get_contact(db, request.target_id, current_user)
        if not contact:
            raise HTTPException(status_code=404, detail="Contact not found")
        draft = crud.place_draft(db, draft, contact, current_user)
        logger.info(
            "draft_placed",
            user_id=current_user.id,
            draft_id=draft.id,
            contact_id=contact.id,
        )
        return {"kind": "draft", "draft": draft}

    if isinstance(payload, MailReorder):
        contact = crud.get_contact(db, payload.contact_id, current_user)
        if not contact:
            raise HTTPException(status_code=404, detail="Contact not found")
        if request.target_id is not None and request.target_id != contact.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Mail can only be reordered within its contact",
            )
        ids = [mail.id for mail in contact.sent_mails]
        if payload.mail_id not in ids:
            raise HTTPException(status_code=404, detail="Mail not found")
        index = len(ids) if request.target_index is None else request.target_index
        return {
            "kind": "mail",
            "mail_ids": move_item(ids, ids.index(payload.mail_id), index),
        }
