from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import get_current_user
from library_api.core.logging import get_logger
from library_api.schemas.auth import ActingUser
from library_api.schemas.loan import BorrowRequest, LoanDetail, LoanRead
from library_api.services import loan_service

logger = get_logger("api.loans")


router = APIRouter(
    prefix="/api/v1/loans",
    tags=["loans"],
)


# ---- Prestar un libro ----
@router.post("/borrow", response_model=LoanRead, status_code=status.HTTP_201_CREATED)
def borrow_book(
    payload: BorrowRequest,
    db: Session = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    loan = loan_service.borrow(db, payload.book_id, current_user)

    logger.info(
        "loan_borrowed",
        extra={
            "operation": "loan_borrow",
            "resource": "loan",
            "loan_id": loan.id,
            "book_id": loan.book_id,
            "due_date": loan.due_date,
            "status_code": 201,
            "user_id": current_user.id,
        },
    )
    return loan


# ---- Devolver un préstamo (dueño o admin) ----
@router.post("/return/{loan_id}", response_model=LoanRead)
def return_book(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    loan = loan_service.return_loan(db, loan_id, current_user)

    logger.info(
        "loan_returned",
        extra={
            "operation": "loan_return",
            "resource": "loan",
            "loan_id": loan.id,
            "book_id": loan.book_id,
            "fine_amount": loan.fine_amount,
            "status_code": 200,
            "user_id": current_user.id,
        },
    )
    return loan


# ---- Préstamos de un usuario (el propio usuario o admin) ----
# importante: debe ir antes de /{loan_id}
@router.get("/user/{user_id}", response_model=List[LoanDetail])
def list_user_loans(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return loan_service.list_for_user(db, user_id, current_user)


# ---- Todos los préstamos (solo admin) ----
@router.get("/", response_model=List[LoanDetail])
def list_loans(
    db: Session = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return loan_service.list_all(db, current_user)


# ---- Detalle de un préstamo ----
@router.get("/{loan_id}", response_model=LoanDetail)
def get_loan(
    loan_id: int,
    db: Session = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return loan_service.get_loan_detail(db, loan_id, current_user)
