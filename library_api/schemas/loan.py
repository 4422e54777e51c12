from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from library_api.db.models import LoanStatus
from library_api.schemas.book import BookRead
from library_api.schemas.user import UserRead


class BorrowRequest(BaseModel):
    book_id: int


class LoanRead(BaseModel):
    id: int
    user_id: int
    book_id: int
    borrow_date: datetime
    due_date: datetime
    return_date: Optional[datetime] = None
    status: LoanStatus
    fine_amount: float

    class Config:
        from_attributes = True


class LoanDetail(LoanRead):
    """Préstamo con su libro y usuario ya resueltos (None si fueron borrados)."""

    book: Optional[BookRead] = None
    user: Optional[UserRead] = None
