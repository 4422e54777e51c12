from sqlalchemy import func
from sqlalchemy.orm import Session

from library_api.db.models import Book, Loan, LoanStatus
from library_api.schemas.stats import StatsSummary


def summary(db: Session) -> StatsSummary:
    """Resumen de inventario y préstamos (GET /stats/summary)."""

    # === Libros / inventario ===
    total_books = db.query(func.count(Book.id)).scalar() or 0
    total_copies = db.query(func.coalesce(func.sum(Book.total_copies), 0)).scalar() or 0
    available_copies = db.query(func.coalesce(func.sum(Book.available_copies), 0)).scalar() or 0
    average_year = db.query(func.avg(Book.published_year)).scalar()

    # === Préstamos ===
    active_loans = (
        db.query(func.count(Loan.id)).filter(Loan.status == LoanStatus.ACTIVE).scalar() or 0
    )
    returned_loans = (
        db.query(func.count(Loan.id)).filter(Loan.status == LoanStatus.RETURNED).scalar() or 0
    )
    total_fines = db.query(func.coalesce(func.sum(Loan.fine_amount), 0)).scalar() or 0

    availability = round(available_copies / total_copies, 2) if total_copies else 0.0

    return StatsSummary(
        total_books=total_books,
        total_copies=total_copies,
        available_copies=available_copies,
        borrowed_copies=total_copies - available_copies,
        average_year=round(average_year) if average_year is not None else 0,
        availability=availability,
        active_loans=active_loans,
        returned_loans=returned_loans,
        total_fines=float(total_fines),
    )
