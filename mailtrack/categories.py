"""Category routes for the Mailtrack API."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from . import crud, schemas
from .auth import get_current_user
from .database import get_db
from .logger import get_logger
from .models import User

router = APIRouter(prefix="/categories", tags=["categories"])
logger = get_logger(__name__)


@router.get("", response_model=List[schemas.CategoryOut])
def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Return the current user's categories ordered by position, then name."""
    return crud.list_categories(db, current_user)


@router.post("", response_model=schemas.CategoryOut, status_code=201)
def create_category(
    category_in: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a new category.

    Args:
        category_in (CategoryCreate): Name and optional position.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        CategoryOut: Created category.
    """
    category = crud.create_category(db, category_in, current_user)
    logger.info("category_created", user_id=current_user.id, category_id=category.id)
    return category


@router.post("/reorder", response_model=schemas.OkOut)
def reorder_categories(
    payload: schemas.ReorderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Rewrite category positions from an ordered id list.

    The category at index ``i`` gets position ``i``; the update is
    all-or-nothing.
    """
    crud.reorder_categories(db, current_user, payload.ids)
    logger.info("categories_reordered", user_id=current_user.id, count=len(payload.ids))
    return {"ok": True}


@router.patch("/{category_id}", response_model=schemas.CategoryOut)
def patch_category(
    category_id: str,
    changes: schemas.CategoryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Partially update a category.

    Raises:
        HTTPException: If the category is not found.
    """
    category = crud.get_category(db, category_id, current_user)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return crud.update_category(
        db, category, changes.model_dump(exclude_unset=True), current_user
    )


@router.delete("/{category_id}", response_model=schemas.OkOut)
def remove_category(
    category_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Delete a category. Its contacts become uncategorized.

    Raises:
        HTTPException: If the category is not found.
    """
    category = crud.get_category(db, category_id, current_user)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    crud.delete_category(db, category, current_user)
    logger.info("category_deleted", user_id=current_user.id, category_id=category_id)
    return {"ok": True}
