from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from library_api.db.models import BookCategory


# Las reglas de negocio (longitudes, formato de ISBN, año) se validan en
# services/inventory.py; aquí solo tipos.

class BookCreate(BaseModel):
    title: str
    author: str
    isbn: str
    published_year: Optional[int] = None
    category: BookCategory = BookCategory.OTHER
    description: Optional[str] = None
    total_copies: int = 1


class BookUpdate(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    isbn: Optional[str] = None
    published_year: Optional[int] = None
    category: Optional[BookCategory] = None
    description: Optional[str] = None
    total_copies: Optional[int] = None


class BookRead(BaseModel):
    id: int
    title: str
    author: str
    isbn: str
    published_year: Optional[int] = None
    category: str
    description: Optional[str] = None
    total_copies: int
    available_copies: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
