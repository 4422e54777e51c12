"""
Libro mayor de préstamos: alta, cierre (devolución) y multas.

No valida disponibilidad de copias ni permisos; eso lo hace loan_service
antes de llamar aquí. Ninguna función hace commit.
"""
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import desc, func, select, update
from sqlalchemy.orm import Session

from library_api.core.config import settings
from library_api.core.errors import InvalidStateError, NotFoundError
from library_api.db.models import Loan, LoanStatus

LOAN_PERIOD = timedelta(days=settings.LOAN_PERIOD_DAYS)
FINE_PER_DAY = settings.FINE_PER_DAY


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite devuelve datetimes naive; los tratamos como UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_fine(due_date: datetime, returned_at: datetime) -> float:
    """
    Multa por días completos de atraso (se trunca, nunca fracciones).

    Devolver justo en la fecha límite o antes no genera multa.
    """
    overdue = as_utc(returned_at) - as_utc(due_date)
    if overdue <= timedelta(0):
        return 0.0
    return float(overdue.days * FINE_PER_DAY)


def create_loan(db: Session, user_id: int, book_id: int, now: Optional[datetime] = None) -> Loan:
    borrowed_at = as_utc(now) if now else utcnow()

    loan = Loan(
        user_id=user_id,
        book_id=book_id,
        borrow_date=borrowed_at,
        due_date=borrowed_at + LOAN_PERIOD,
        return_date=None,
        status=LoanStatus.ACTIVE,
        fine_amount=0,
    )
    db.add(loan)
    db.flush()  # necesitamos el id dentro de la transacción
    return loan


def find_loan(db: Session, loan_id: int) -> Optional[Loan]:
    return db.get(Loan, loan_id)


def get_loan(db: Session, loan_id: int) -> Loan:
    loan = find_loan(db, loan_id)
    if loan is None:
        raise NotFoundError(f"Loan {loan_id} not found")
    return loan


def close_loan(db: Session, loan_id: int, returned_at: datetime) -> Loan:
    """
    active -> returned. Un préstamo ya devuelto no se vuelve a cerrar.

    El UPDATE es condicional sobre status == active, así dos devoluciones
    concurrentes del mismo préstamo no pueden ganar las dos.
    """
    loan = get_loan(db, loan_id)
    if loan.status == LoanStatus.RETURNED:
        raise InvalidStateError(f"Loan {loan_id} has already been returned")

    returned_at = as_utc(returned_at)
    fine = compute_fine(loan.due_date, returned_at)

    result = db.execute(
        update(Loan)
        .where(Loan.id == loan_id, Loan.status == LoanStatus.ACTIVE)
        .values(
            status=LoanStatus.RETURNED,
            return_date=returned_at,
            fine_amount=fine,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InvalidStateError(f"Loan {loan_id} has already been returned")

    return db.get(Loan, loan_id, populate_existing=True)


def list_by_user(db: Session, user_id: int) -> List[Loan]:
    query = (
        select(Loan)
        .where(Loan.user_id == user_id)
        .order_by(desc(Loan.borrow_date), desc(Loan.id))
    )
    return list(db.execute(query).scalars().all())


def list_all(db: Session) -> List[Loan]:
    query = select(Loan).order_by(desc(Loan.borrow_date), desc(Loan.id))
    return list(db.execute(query).scalars().all())


def count_active_for_book(db: Session, book_id: int) -> int:
    query = select(func.count(Loan.id)).where(
        Loan.book_id == book_id,
        Loan.status == LoanStatus.ACTIVE,
    )
    return db.execute(query).scalar_one()
