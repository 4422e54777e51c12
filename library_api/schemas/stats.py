from pydantic import BaseModel


class StatsSummary(BaseModel):
    # Libros / inventario
    total_books: int
    total_copies: int
    available_copies: int
    borrowed_copies: int
    average_year: int
    availability: float  # available / total, 2 decimales

    # Préstamos
    active_loans: int
    returned_loans: int
    total_fines: float
