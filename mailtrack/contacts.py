"""Contact management routes for the Mailtrack API."""

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from fastapi_limiter.depends import RateLimiter
from sqlalchemy.orm import Session

from . import crud, csv_io, schemas
from .auth import get_current_user
from .core import get_settings
from .database import get_db
from .logger import get_logger
from .models import User

router = APIRouter(prefix="/contacts", tags=["contacts"])
logger = get_logger(__name__)
settings = get_settings()


def _import_rows(db: Session, user: User, rows: List[csv_io.CsvRow]) -> dict:
    """
    Validate rows and upsert the valid ones.

    Raises:
        HTTPException: If no row survives validation.

    Returns:
        dict: ``contacts`` saved and per-row ``errors``.
    """
    valid, errors = csv_io.validate_rows(rows)
    if not valid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No valid contacts found",
        )

    saved = crud.bulk_upsert_contacts(
        db, user, [(row.name, row.email, row.category_id) for row in valid]
    )
    logger.info(
        "contacts_imported",
        user_id=user.id,
        saved=len(saved),
        rejected=len(errors),
    )
    return {
        "contacts": saved,
        "errors": [
            schemas.RowError(row=error.row, email=error.email, reason=error.reason)
            for error in errors
        ],
    }


@router.get("", response_model=List[schemas.ContactOut])
def list_contacts(
    q: str | None = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Retrieve the current user's contacts in display order.

    Supports optional text search by name or email.

    Args:
        q (str | None): Optional search query.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        list[ContactOut]: List of contacts.
    """
    return crud.list_contacts(db, current_user, q=q)


@router.post("", response_model=schemas.ContactOut, status_code=201)
def create_contact(
    contact_in: schemas.ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a new contact owned by the current user.

    Args:
        contact_in (ContactCreate): Contact input data.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        ContactOut: Created contact.
    """
    contact = crud.create_contact(db, contact_in, current_user)
    logger.info("contact_created", user_id=current_user.id, contact_id=contact.id)
    return contact


@router.post("/bulk", response_model=schemas.BulkContactsOut, status_code=201)
def bulk_contacts(
    payload: schemas.BulkContactsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create or update many contacts, matched by email.

    Rows with a missing or malformed email are reported in ``errors``
    and skipped; the rest are saved in one transaction.
    """
    if not payload.contacts:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No contacts provided"
        )
    rows = [
        csv_io.CsvRow(name=item.name or "", email=item.email, category_id=item.category_id)
        for item in payload.contacts
    ]
    return _import_rows(db, current_user, rows)


@router.post(
    "/import",
    response_model=schemas.BulkContactsOut,
    status_code=201,
    dependencies=[
        Depends(
            RateLimiter(
                times=settings.BULK_IMPORT_RATE_TIMES,
                seconds=settings.BULK_IMPORT_RATE_SECONDS,
            )
        )
    ],
)
def import_contacts(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Import contacts from an uploaded CSV file.

    The delimiter (comma, semicolon or tab) is detected automatically and
    a header row is skipped.

    Args:
        file (UploadFile): CSV file with name and email columns.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        BulkContactsOut: Saved contacts and rejected rows.
    """
    raw = file.file.read()
    text = raw.decode("utf-8-sig", errors="replace")
    rows = csv_io.parse_contacts_csv(text)
    if not rows:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="No contacts provided"
        )
    return _import_rows(db, current_user, rows)


@router.get("/export")
def export_contacts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Download all contacts as CSV (name, email, category)."""
    categories = {c.id: c.name for c in crud.list_categories(db, current_user)}
    body = csv_io.export_contacts_csv(crud.list_contacts(db, current_user), categories)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="contacts.csv"'},
    )


@router.post("/reorder", response_model=schemas.OkOut)
def reorder_contacts(
    payload: schemas.ReorderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Rewrite contact positions from an ordered id list, atomically."""
    crud.reorder_contacts(db, current_user, payload.ids)
    logger.info("contacts_reordered", user_id=current_user.id, count=len(payload.ids))
    return {"ok": True}


@router.patch("/{contact_id}", response_model=schemas.ContactOut)
def patch_contact(
    contact_id: str,
    changes: schemas.ContactUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Partially update an existing contact.

    Only fields provided in the request will be updated.

    Args:
        contact_id (str): Contact identifier.
        changes (ContactUpdate): Fields to update.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Raises:
        HTTPException: If contact is not found.

    Returns:
        ContactOut: Updated contact.
    """
    c = crud.get_contact(db, contact_id, current_user)
    if not c:
        raise HTTPException(status_code=404, detail="Contact not found")
    return crud.update_contact(
        db, c, changes.model_dump(exclude_unset=True), current_user
    )


@router.delete("/{contact_id}", response_model=schemas.OkOut)
def remove_contact(
    contact_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Delete a contact owned by the current user.

    Raises:
        HTTPException: If contact is not found.

    Returns:
        dict: Deletion status.
    """
    c = crud.get_contact(db, contact_id, current_user)
    if not c:
        raise HTTPException(status_code=404, detail="Contact not found")
    crud.delete_contact(db, c, current_user)
    logger.info("contact_deleted", user_id=current_user.id, contact_id=contact_id)
    return {"ok": True}
