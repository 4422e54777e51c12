"""
Inventario de libros: catálogo y contadores de copias.

`decrement_available` / `increment_available` son actualizaciones
condicionales (compare-and-set) contra la base de datos y NO hacen commit:
el que llama (loan_service) es dueño de la transacción.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import asc, case, desc, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from library_api.core.errors import ConflictError, NotFoundError, UnavailableError, ValidationError
from library_api.core.logging import get_logger
from library_api.db.models import Book, BookCategory

logger = get_logger("services.inventory")

ISBN_PATTERN = re.compile(r"^[0-9-]+$")

TITLE_LENGTH = (2, 200)
AUTHOR_LENGTH = (2, 100)
DESCRIPTION_MAX_LENGTH = 1000
MIN_PUBLISHED_YEAR = 1000

# sort=... de GET /books
SORT_OPTIONS = {
    "title-asc": asc(Book.title),
    "title-desc": desc(Book.title),
    "newest": desc(Book.created_at),
    "oldest": asc(Book.created_at),
    "available": desc(Book.available_copies),
}
DEFAULT_SORT = "newest"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_copies(value: Any, field: str = "total_copies") -> None:
    if not _is_int(value) or value < 0:
        raise ValidationError(f"{field} must be a non-negative integer")


def clean_book_fields(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    """
    Valida y normaliza los campos de un libro.

    Con partial=True (updates) solo se validan los campos presentes.
    Junta todos los problemas en un solo ValidationError.
    """
    cleaned = dict(data)
    errors: List[str] = []

    for field, (min_len, max_len) in (
        ("title", TITLE_LENGTH),
        ("author", AUTHOR_LENGTH),
        ("isbn", (1, 20)),
    ):
        if field not in cleaned:
            if not partial:
                errors.append(f"{field} is required")
            continue

        value = cleaned[field]
        if value is None or not str(value).strip():
            errors.append(f"{field} is required")
            continue

        value = str(value).strip()
        if not (min_len <= len(value) <= max_len):
            errors.append(f"{field} must be between {min_len} and {max_len} characters")
        cleaned[field] = value

    isbn = cleaned.get("isbn")
    if isinstance(isbn, str) and isbn and not ISBN_PATTERN.match(isbn):
        errors.append("isbn may only contain digits and dashes")

    if "total_copies" in cleaned or not partial:
        total = cleaned.get("total_copies")
        if not _is_int(total) or total < 0:
            errors.append("total_copies must be a non-negative integer")

    year = cleaned.get("published_year")
    if year is not None:
        max_year = datetime.now(timezone.utc).year + 1
        if not _is_int(year) or not (MIN_PUBLISHED_YEAR <= year <= max_year):
            errors.append(f"published_year must be between {MIN_PUBLISHED_YEAR} and {max_year}")

    if "category" in cleaned:
        category = cleaned["category"]
        if category is None and partial:
            cleaned.pop("category")
        else:
            try:
                cleaned["category"] = BookCategory(category or BookCategory.OTHER).value
            except ValueError:
                errors.append(f"category must be one of: {', '.join(c.value for c in BookCategory)}")

    description = cleaned.get("description")
    if description is not None:
        description = str(description).strip()
        if len(description) > DESCRIPTION_MAX_LENGTH:
            errors.append(f"description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
        cleaned["description"] = description

    if errors:
        raise ValidationError("; ".join(errors))
    return cleaned


# ======================
# Lectura
# ======================

def find_book(db: Session, book_id: int) -> Optional[Book]:
    return db.get(Book, book_id)


def get_book(db: Session, book_id: int) -> Book:
    book = find_book(db, book_id)
    if book is None:
        raise NotFoundError(f"Book {book_id} not found")
    return book


def get_books_by_ids(db: Session, book_ids: Iterable[int]) -> Dict[int, Book]:
    ids = set(book_ids)
    if not ids:
        return {}
    books = db.execute(select(Book).where(Book.id.in_(ids))).scalars().all()
    return {b.id: b for b in books}


def list_books(
    db: Session,
    category: Optional[str] = None,
    author: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[Book]:
    query = select(Book)

    if category:
        query = query.where(Book.category == category)
    if author:
        query = query.where(Book.author.ilike(f"%{author}%"))
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Book.title.ilike(pattern),
                Book.author.ilike(pattern),
                Book.isbn.ilike(pattern),
                Book.description.ilike(pattern),
            )
        )

    order = SORT_OPTIONS.get(sort or DEFAULT_SORT, SORT_OPTIONS[DEFAULT_SORT])
    query = query.order_by(order, desc(Book.id))

    return list(db.execute(query).scalars().all())


# ======================
# Catálogo
# ======================

def register_book(
    db: Session,
    title: str,
    author: str,
    isbn: str,
    total_copies: int = 1,
    published_year: Optional[int] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
) -> Book:
    """Alta de un título; al inicio todas las copias están disponibles."""
    fields = clean_book_fields(
        {
            "title": title,
            "author": author,
            "isbn": isbn,
            "total_copies": total_copies,
            "published_year": published_year,
            "category": category,
            "description": description,
        }
    )

    existing = db.execute(select(Book.id).where(Book.isbn == fields["isbn"])).first()
    if existing:
        raise ConflictError(f"A book with ISBN {fields['isbn']} already exists")

    book = Book(**fields, available_copies=fields["total_copies"])
    db.add(book)
    try:
        db.commit()
    except IntegrityError:
        # Otro request ganó la carrera por el mismo ISBN
        db.rollback()
        raise ConflictError(f"A book with ISBN {fields['isbn']} already exists")
    db.refresh(book)

    logger.info(
        "book_registered",
        extra={
            "operation": "book_create",
            "resource": "book",
            "book_id": book.id,
            "isbn": book.isbn,
            "total_copies": book.total_copies,
        },
    )
    return book


def update_book(db: Session, book_id: int, changes: Dict[str, Any]) -> Book:
    """
    Update parcial. Un cambio de total_copies pasa por la misma lógica
    de clamp que update_copy_count; available_copies nunca se asigna directo.
    """
    book = get_book(db, book_id)
    fields = clean_book_fields(changes, partial=True)
    fields.pop("available_copies", None)

    new_isbn = fields.get("isbn")
    if new_isbn and new_isbn != book.isbn:
        clash = db.execute(select(Book.id).where(Book.isbn == new_isbn, Book.id != book_id)).first()
        if clash:
            raise ConflictError(f"A book with ISBN {new_isbn} already exists")

    new_total = fields.pop("total_copies", None)

    try:
        if new_total is not None:
            _apply_copy_count(db, book_id, new_total)
        for field, value in fields.items():
            setattr(book, field, value)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Book update conflicts with an existing book")

    db.refresh(book)
    logger.info(
        "book_updated",
        extra={
            "operation": "book_update",
            "resource": "book",
            "book_id": book.id,
            "fields": sorted(changes.keys()),
        },
    )
    return book


def delete_book(db: Session, book_id: int) -> None:
    """Borra el libro. El chequeo de préstamos activos lo hace loan_service."""
    book = get_book(db, book_id)
    db.delete(book)
    db.commit()

    logger.info(
        "book_deleted",
        extra={"operation": "book_delete", "resource": "book", "book_id": book_id},
    )


# ======================
# Contadores de copias
# ======================

def _reload(db: Session, book_id: int) -> Optional[Book]:
    # Los UPDATE de abajo no tocan el identity map; releemos la fila
    return db.get(Book, book_id, populate_existing=True)


def decrement_available(db: Session, book_id: int) -> int:
    """
    Resta una copia disponible solo si queda alguna (compare-and-set).

    Devuelve el nuevo available_copies. No hace commit.
    """
    result = db.execute(
        update(Book)
        .where(Book.id == book_id, Book.available_copies > 0)
        .values(available_copies=Book.available_copies - 1)
        .execution_options(synchronize_session=False)
    )

    book = _reload(db, book_id)
    if book is None:
        raise NotFoundError(f"Book {book_id} not found")
    if result.rowcount == 0:
        raise UnavailableError("Book not available: no copies left")

    return book.available_copies


def increment_available(db: Session, book_id: int) -> int:
    """
    Suma una copia disponible, con tope en total_copies.

    Si ya está en el tope no cambia nada (no debería pasar con uso correcto).
    No hace commit.
    """
    result = db.execute(
        update(Book)
        .where(Book.id == book_id, Book.available_copies < Book.total_copies)
        .values(available_copies=Book.available_copies + 1)
        .execution_options(synchronize_session=False)
    )

    book = _reload(db, book_id)
    if book is None:
        raise NotFoundError(f"Book {book_id} not found")

    if result.rowcount == 0:
        logger.warning(
            "increment_at_capacity",
            extra={"operation": "book_increment", "resource": "book", "book_id": book_id},
        )
    return book.available_copies


def _apply_copy_count(db: Session, book_id: int, new_total: int) -> None:
    _check_copies(new_total)
    # Un solo UPDATE: el clamp no compite con un borrow concurrente
    result = db.execute(
        update(Book)
        .where(Book.id == book_id)
        .values(
            total_copies=new_total,
            available_copies=case(
                (Book.available_copies > new_total, new_total),
                else_=Book.available_copies,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise NotFoundError(f"Book {book_id} not found")
    _reload(db, book_id)


def update_copy_count(db: Session, book_id: int, new_total: int) -> Book:
    """
    Cambia total_copies. Si available_copies quedaría por encima del nuevo
    total se baja (clamp); si no, available_copies no se toca.
    """
    try:
        _apply_copy_count(db, book_id, new_total)
        db.commit()
    except Exception:
        db.rollback()
        raise

    book = get_book(db, book_id)
    db.refresh(book)

    logger.info(
        "book_copy_count_updated",
        extra={
            "operation": "book_copy_count",
            "resource": "book",
            "book_id": book_id,
            "total_copies": book.total_copies,
            "available_copies": book.available_copies,
        },
    )
    return book
