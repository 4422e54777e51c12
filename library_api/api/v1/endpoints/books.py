from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import get_current_user, require_admin
from library_api.db.models import BookCategory
from library_api.schemas.book import BookCreate, BookRead, BookUpdate
from library_api.services import inventory, loan_service

router = APIRouter(
    prefix="/api/v1/books",
    tags=["books"],
)


@router.get("/", response_model=List[BookRead], dependencies=[Depends(get_current_user)])
def list_books(
    category: Optional[BookCategory] = Query(None),
    author: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    sort: Optional[str] = Query(None, description="title-asc, title-desc, newest, oldest, available"),
    db: Session = Depends(get_db),
):
    return inventory.list_books(
        db,
        category=category.value if category else None,
        author=author,
        search=search,
        sort=sort,
    )


@router.post(
    "/",
    response_model=BookRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def create_book(
    payload: BookCreate,
    db: Session = Depends(get_db),
):
    return inventory.register_book(
        db,
        title=payload.title,
        author=payload.author,
        isbn=payload.isbn,
        total_copies=payload.total_copies,
        published_year=payload.published_year,
        category=payload.category,
        description=payload.description,
    )


@router.get("/{book_id}", response_model=BookRead, dependencies=[Depends(get_current_user)])
def get_book(
    book_id: int,
    db: Session = Depends(get_db),
):
    return inventory.get_book(db, book_id)


@router.put(
    "/{book_id}",
    response_model=BookRead,
    dependencies=[Depends(require_admin)],
)
def update_book(
    book_id: int,
    payload: BookUpdate,
    db: Session = Depends(get_db),
):
    # Solo los campos que vinieron en el body
    return inventory.update_book(db, book_id, payload.model_dump(exclude_unset=True))


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
def delete_book(
    book_id: int,
    db: Session = Depends(get_db),
):
    loan_service.delete_book(db, book_id)
    return None
