"""
Orquestación de préstamos: junta inventario + ledger bajo las reglas de
autorización.

borrow y return_loan corren en UNA transacción de base de datos: si
cualquier paso falla se hace rollback de todo (incluido el préstamo recien
insertado), así nadie ve un préstamo sin su copia descontada ni al revés.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from library_api.core.errors import ConflictError, ForbiddenError, InvalidStateError, UnavailableError
from library_api.db.models import Book, Loan, LoanStatus, UserRole
from library_api.schemas.auth import ActingUser
from library_api.schemas.book import BookRead
from library_api.schemas.loan import LoanDetail
from library_api.schemas.user import UserRead
from library_api.services import inventory, ledger, users


def _is_admin(acting_user: ActingUser) -> bool:
    return acting_user.role == UserRole.ADMIN


def _require_self_or_admin(owner_id: int, acting_user: ActingUser) -> None:
    if acting_user.id != owner_id and not _is_admin(acting_user):
        raise ForbiddenError("You are not allowed to access this loan")


def borrow(db: Session, book_id: int, acting_user: ActingUser, now: Optional[datetime] = None) -> Loan:
    """
    1. El libro debe existir (NotFoundError).
    2. Debe quedar alguna copia (UnavailableError, sin tocar nada).
    3. Se crea el préstamo y 4. se descuenta la copia con un UPDATE
       condicional; si otro request se llevó la última copia entre 2 y 4,
       el UPDATE no afecta filas y se revierte el préstamo.
    """
    book = inventory.get_book(db, book_id)
    if book.available_copies == 0:
        raise UnavailableError(f"Book not available: no copies left of '{book.title}'")

    try:
        loan = ledger.create_loan(db, user_id=acting_user.id, book_id=book_id, now=now)
        inventory.decrement_available(db, book_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    return loan


def return_loan(
    db: Session,
    loan_id: int,
    acting_user: ActingUser,
    now: Optional[datetime] = None,
) -> Loan:
    """Devuelve un préstamo: solo el dueño o un admin. Calcula la multa."""
    loan = ledger.get_loan(db, loan_id)
    _require_self_or_admin(loan.user_id, acting_user)

    if loan.status == LoanStatus.RETURNED:
        raise InvalidStateError(f"Loan {loan_id} has already been returned")

    try:
        loan = ledger.close_loan(db, loan_id, returned_at=now or ledger.utcnow())
        inventory.increment_available(db, loan.book_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    return loan


def _with_references(db: Session, loans: List[Loan]) -> List[LoanDetail]:
    # Join explícito: dos lookups en lote en vez de relationships en el modelo
    books = inventory.get_books_by_ids(db, (loan.book_id for loan in loans))
    people = users.get_users_by_ids(db, (loan.user_id for loan in loans))

    details = []
    for loan in loans:
        book: Optional[Book] = books.get(loan.book_id)
        user = people.get(loan.user_id)
        details.append(
            LoanDetail.model_validate(loan).model_copy(
                update={
                    "book": BookRead.model_validate(book) if book else None,
                    "user": UserRead.model_validate(user) if user else None,
                }
            )
        )
    return details


def list_for_user(db: Session, user_id: int, acting_user: ActingUser) -> List[LoanDetail]:
    _require_self_or_admin(user_id, acting_user)
    return _with_references(db, ledger.list_by_user(db, user_id))


def list_all(db: Session, acting_user: ActingUser) -> List[LoanDetail]:
    if not _is_admin(acting_user):
        raise ForbiddenError("Admin role required")
    return _with_references(db, ledger.list_all(db))


def get_loan_detail(db: Session, loan_id: int, acting_user: ActingUser) -> LoanDetail:
    loan = ledger.get_loan(db, loan_id)
    _require_self_or_admin(loan.user_id, acting_user)
    return _with_references(db, [loan])[0]


def delete_book(db: Session, book_id: int) -> None:
    """No se borra un libro con préstamos activos (quedarían huérfanos)."""
    inventory.get_book(db, book_id)

    active = ledger.count_active_for_book(db, book_id)
    if active:
        raise ConflictError(f"Book {book_id} has {active} active loan(s) and cannot be deleted")

    inventory.delete_book(db, book_id)
