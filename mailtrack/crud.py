"""CRUD operations for users, categories, contacts and manual drafts.

This module contains database interaction logic isolated from FastAPI
route handlers. Every accessor is scoped to the owning user: rows that
belong to someone else are reported exactly like rows that do not exist.
"""

from typing import Iterable, List, Optional, Tuple

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .csv_io import sanitize_email
from .reorder import reindex


def _commit(db: Session, conflict_detail: str) -> None:
    """Commit, turning unique constraint violations into 409 responses."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail)


def _reject_nulls(changes: dict, fields: Iterable[str]) -> None:
    for field in fields:
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be null",
            )


def _clean_name(name: str, label: str) -> str:
    name = name.strip()
    if not name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} is required"
        )
    return name


def _next_position(db: Session, model, *criteria) -> int:
    current = db.execute(select(func.max(model.position)).where(*criteria)).scalar()
    return 0 if current is None else current + 1


def _reorder(db: Session, model, user: models.User, ids: List[str], label: str) -> None:
    """
    Rewrite ``position`` for every id in one transaction.

    All ids must belong to ``user``; otherwise nothing is changed and a
    404 is raised.
    """
    try:
        pairs = reindex(ids)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if not pairs:
        return

    owned = set(
        db.scalars(
            select(model.id).where(model.user_id == user.id, model.id.in_(ids))
        ).all()
    )
    if len(owned) != len(pairs):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found"
        )

    try:
        for item_id, position in pairs:
            db.execute(
                update(model)
                .where(model.id == item_id, model.user_id == user.id)
                .values(position=position)
            )
        db.commit()
    except Exception:
        db.rollback()
        raise


# Users


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email)
    ).scalar_one_or_none()


def upsert_user(db: Session, email: str, name: str | None = None) -> models.User:
    """
    Create the user row for a signed-in identity, or refresh its name.

    Args:
        db (Session): Database session.
        email (str): Verified email from the identity provider.
        name (str | None): Display name, if the provider sent one.

    Returns:
        User: Persisted user.
    """
    email = sanitize_email(email)
    user = get_user_by_email(db, email)
    if user is None:
        user = models.User(email=email, name=name)
        db.add(user)
    elif name:
        user.name = name
    _commit(db, "User already exists")
    db.refresh(user)
    return user


# Categories


def list_categories(db: Session, user: models.User) -> List[models.Category]:
    """Return the user's categories ordered by position, then name."""
    return db.scalars(
        select(models.Category)
        .where(models.Category.user_id == user.id)
        .order_by(models.Category.position, models.Category.name)
    ).all()


def get_category(
    db: Session, category_id: str, user: models.User
) -> models.Category | None:
    """
    Retrieve a single category owned by the given user.

    Returns:
        Category | None: Category if found, otherwise ``None``.
    """
    return db.execute(
        select(models.Category).where(
            models.Category.id == category_id,
            models.Category.user_id == user.id,
        )
    ).scalar_one_or_none()


def _ensure_category(db: Session, category_id: Optional[str], user: models.User) -> None:
    if category_id is not None and get_category(db, category_id, user) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Category not found"
        )


def _category_name_taken(
    db: Session, name: str, user: models.User, exclude_id: str | None = None
) -> bool:
    stmt = select(models.Category.id).where(
        models.Category.user_id == user.id, models.Category.name == name
    )
    if exclude_id is not None:
        stmt = stmt.where(models.Category.id != exclude_id)
    return db.execute(stmt).first() is not None


def create_category(
    db: Session, category_in: schemas.CategoryCreate, user: models.User
) -> models.Category:
    """
    Create a category for the given user.

    Without an explicit position the category is appended after the
    existing ones.

    Raises:
        HTTPException: 400 for a blank name, 409 for a duplicate name.

    Returns:
        Category: Newly created category.
    """
    name = _clean_name(category_in.name, "Name")
    if _category_name_taken(db, name, user):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Category name already exists for this user",
        )

    position = category_in.position
    if position is None:
        position = _next_position(
            db, models.Category, models.Category.user_id == user.id
        )

    category = models.Category(user_id=user.id, name=name, position=position)
    db.add(category)
    _commit(db, "Category name already exists for this user")
    db.refresh(category)
    return category


def update_category(
    db: Session, category: models.Category, changes: dict, user: models.User
) -> models.Category:
    """
    Apply a partial update to a category.

    Args:
        db (Session): Database session.
        category (Category): Category owned by ``user``.
        changes (dict): Only the fields present in the request.
        user (User): Owner.

    Returns:
        Category: Updated category.
    """
    _reject_nulls(changes, ("name", "position"))
    if "name" in changes:
        changes["name"] = _clean_name(changes["name"], "Name")
        if _category_name_taken(db, changes["name"], user, exclude_id=category.id):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Category name already exists",
            )

    for key, value in changes.items():
        setattr(category, key, value)

    db.add(category)
    _commit(db, "Category name already exists")
    db.refresh(category)
    return category


def delete_category(db: Session, category: models.Category, user: models.User) -> None:
    """
    Delete a category, moving its contacts to "uncategorized".

    Contacts are detached rather than deleted.
    """
    db.execute(
        update(models.Contact)
        .where(
            models.Contact.user_id == user.id,
            models.Contact.category_id == category.id,
        )
        .values(category_id=None)
    )
    db.delete(category)
    db.commit()


def reorder_categories(db: Session, user: models.User, ids: List[str]) -> None:
    """Set each category's position to its index in ``ids``."""
    _reorder(db, models.Category, user, ids, "Category")


# Contacts


def _contacts_stmt(user: models.User, q: str | None = None):
    stmt = (
        select(models.Contact)
        .where(models.Contact.user_id == user.id)
        .order_by(models.Contact.position, models.Contact.name)
    )
    if q:
        like_q = f"%{q}%"
        stmt = stmt.where(
            or_(
                models.Contact.name.ilike(like_q),
                models.Contact.email.ilike(like_q),
            )
        )
    return stmt


def list_contacts(db: Session, user: models.User, q: str | None = None):
    """
    Retrieve the user's contacts in display order.

    Supports optional case-insensitive search by name or email.

    Args:
        db (Session): Database session.
        user (User): Contact owner.
        q (str | None): Optional search query.

    Returns:
        list[Contact]: List of contacts.
    """
    return db.scalars(_contacts_stmt(user, q)).all()


def get_contact(db: Session, contact_id: str, user: models.User):
    """
    Retrieve a single contact owned by the given user.

    Args:
        db (Session): Database session.
        contact_id (str): Contact identifier.
        user (User): Contact owner.

    Returns:
        Contact | None: Contact if found, otherwise ``None``.
    """
    return db.execute(
        select(models.Contact).where(
            models.Contact.id == contact_id,
            models.Contact.user_id == user.id,
        )
    ).scalar_one_or_none()


def get_contact_by_email(db: Session, email: str, user: models.User):
    return db.execute(
        select(models.Contact).where(
            models.Contact.user_id == user.id,
            models.Contact.email == email,
        )
    ).scalar_one_or_none()


def create_contact(
    db: Session, contact_in: schemas.ContactCreate, user: models.User
) -> models.Contact:
    """
    Create a new contact owned by the given user.

    The email is trimmed and lowercased and the contact is appended
    after the user's existing contacts.

    Args:
        db (Session): Database session.
        contact_in (ContactCreate): Contact data.
        user (User): Owner of the contact.

    Raises:
        HTTPException: If a contact with the same email already exists.

    Returns:
        Contact: Newly created contact.
    """
    email = sanitize_email(contact_in.email)
    name = _clean_name(contact_in.name, "Name")
    if get_contact_by_email(db, email, user):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Contact already exists",
        )
    _ensure_category(db, contact_in.category_id, user)

    contact = models.Contact(
        user_id=user.id,
        name=name,
        email=email,
        category_id=contact_in.category_id,
        position=_next_position(db, models.Contact, models.Contact.user_id == user.id),
        last_sent_at=None,
    )
    db.add(contact)
    _commit(db, "Contact already exists")
    db.refresh(contact)
    return contact


def update_contact(
    db: Session, contact: models.Contact, changes: dict, user: models.User
) -> models.Contact:
    """
    Update mutable fields of a contact.

    ``category_id`` and ``last_sent_at`` may be cleared with ``None``.

    Args:
        db (Session): Database session.
        contact (Contact): Contact instance.
        changes (dict): Fields to update.
        user (User): Owner.

    Returns:
        Contact: Updated contact.
    """
    _reject_nulls(changes, ("name", "email", "position"))
    if "name" in changes:
        changes["name"] = _clean_name(changes["name"], "Name")
    if "email" in changes:
        changes["email"] = sanitize_email(changes["email"])
        other = get_contact_by_email(db, changes["email"], user)
        if other is not None and other.id != contact.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already exists for this user",
            )
    if "category_id" in changes:
        _ensure_category(db, changes["category_id"], user)

    for key, value in changes.items():
        setattr(contact, key, value)

    db.add(contact)
    _commit(db, "Email already exists for this user")
    db.refresh(contact)
    return contact


def move_contact(
    db: Session,
    contact: models.Contact,
    category_id: Optional[str],
    user: models.User,
) -> models.Contact:
    """
    Move a contact to the end of another category (``None`` = uncategorized).

    Dropping a contact onto the category it is already in changes nothing.
    """
    if contact.category_id == category_id:
        return contact
    _ensure_category(db, category_id, user)
    in_category = (
        models.Contact.category_id.is_(None)
        if category_id is None
        else models.Contact.category_id == category_id
    )
    position = _next_position(
        db, models.Contact, models.Contact.user_id == user.id, in_category
    )
    return update_contact(
        db, contact, {"category_id": category_id, "position": position}, user
    )


def delete_contact(db: Session, contact: models.Contact, user: models.User) -> None:
    """
    Delete a contact and its sent mail.

    Manual drafts placed on the contact go back to the unplaced pool.
    """
    db.execute(
        update(models.ManualDraft)
        .where(
            models.ManualDraft.user_id == user.id,
            models.ManualDraft.contact_id == contact.id,
        )
        .values(contact_id=None)
    )
    db.delete(contact)
    db.commit()


def reorder_contacts(db: Session, user: models.User, ids: List[str]) -> None:
    """Set each contact's position to its index in ``ids``."""
    _reorder(db, models.Contact, user, ids, "Contact")


def bulk_upsert_contacts(
    db: Session,
    user: models.User,
    rows: List[Tuple[str, str, Optional[str]]],
) -> List[models.Contact]:
    """
    Create or update contacts by email in a single transaction.

    Args:
        db (Session): Database session.
        user (User): Owner.
        rows (list[tuple]): ``(name, email, category_id)`` with already
            validated, normalized emails.

    Raises:
        HTTPException: 404 if a referenced category is not the user's.

    Returns:
        list[Contact]: One contact per distinct email, in input order.
    """
    for category_id in {row[2] for row in rows if row[2] is not None}:
        _ensure_category(db, category_id, user)

    position = _next_position(db, models.Contact, models.Contact.user_id == user.id)
    by_email: dict[str, models.Contact] = {}
    try:
        for name, email, category_id in rows:
            contact = by_email.get(email) or get_contact_by_email(db, email, user)
            if contact is None:
                contact = models.Contact(
                    user_id=user.id,
                    name=name,
                    email=email,
                    category_id=category_id,
                    position=position,
                )
                position += 1
                db.add(contact)
            else:
                contact.name = name
                if category_id is not None:
                    contact.category_id = category_id
            by_email[email] = contact
        db.commit()
    except Exception:
        db.rollback()
        raise

    saved = list(by_email.values())
    for contact in saved:
        db.refresh(contact)
    return saved


def get_dashboard_contacts(db: Session, user: models.User, q: str | None = None):
    """
    Contacts in display order with sent mail (newest first) and attachments.
    """
    stmt = _contacts_stmt(user, q).options(
        selectinload(models.Contact.sent_mails).selectinload(
            models.SentMail.attachments
        )
    )
    return db.scalars(stmt).all()


# Manual drafts


def list_drafts(db: Session, user: models.User) -> List[models.ManualDraft]:
    """Return all drafts grouped by contact, each group ordered by position."""
    return db.scalars(
        select(models.ManualDraft)
        .where(models.ManualDraft.user_id == user.id)
        .order_by(models.ManualDraft.contact_id, models.ManualDraft.position)
    ).all()


def get_draft(db: Session, draft_id: str, user: models.User):
    return db.execute(
        select(models.ManualDraft).where(
            models.ManualDraft.id == draft_id,
            models.ManualDraft.user_id == user.id,
        )
    ).scalar_one_or_none()


def create_draft(
    db: Session, draft_in: schemas.ManualDraftCreate, user: models.User
) -> models.ManualDraft:
    """
    Create a draft at the end of the unplaced pool.

    Returns:
        ManualDraft: Draft with ``position`` one past the highest
        unplaced position, or 0 for an empty pool.
    """
    position = _next_position(
        db,
        models.ManualDraft,
        models.ManualDraft.user_id == user.id,
        models.ManualDraft.contact_id.is_(None),
    )
    draft = models.ManualDraft(
        user_id=user.id,
        contact_id=None,
        note=draft_in.note or "",
        position=position,
    )
    db.add(draft)
    db.commit()
    db.refresh(draft)
    return draft


def update_draft(
    db: Session, draft: models.ManualDraft, changes: dict, user: models.User
) -> models.ManualDraft:
    """
    Apply a partial update to a draft.

    A ``None`` note is stored as an empty string; a ``None`` contact
    returns the draft to the unplaced pool.
    """
    _reject_nulls(changes, ("position",))
    if "note" in changes and changes["note"] is None:
        changes["note"] = ""
    if changes.get("contact_id") is not None:
        if get_contact(db, changes["contact_id"], user) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND, detail="Contact not found"
            )

    for key, value in changes.items():
        setattr(draft, key, value)

    db.add(draft)
    db.commit()
    db.refresh(draft)
    return draft


def place_draft(
    db: Session, draft: models.ManualDraft, contact: models.Contact, user: models.User
) -> models.ManualDraft:
    """
    Attach a draft to a contact, after the contact's existing drafts.

    A draft already on ``contact`` keeps its position.
    """
    if draft.contact_id == contact.id:
        return draft
    position = _next_position(
        db,
        models.ManualDraft,
        models.ManualDraft.user_id == user.id,
        models.ManualDraft.contact_id == contact.id,
    )
    return update_draft(
        db, draft, {"contact_id": contact.id, "position": position}, user
    )


def delete_draft(db: Session, draft: models.ManualDraft) -> None:
    db.delete(draft)
    db.commit()


def reorder_drafts(db: Session, user: models.User, ids: List[str]) -> None:
    """Set each draft's position to its index in ``ids``."""
    _reorder(db, models.ManualDraft, user, ids, "Draft")
