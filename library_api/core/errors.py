"""
Errores de negocio de la API.

Los servicios lanzan estas excepciones; main.py las traduce a una
respuesta JSON con `kind` (legible por maquina) y `message`.
"""
from fastapi import status


class LibraryError(Exception):
    """Base de todos los errores de negocio."""

    kind = "library_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(LibraryError):
    """Datos de entrada faltantes o mal formados."""

    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(LibraryError):
    """Libro, préstamo o usuario inexistente."""

    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(LibraryError):
    """ISBN o email duplicado, o borrado bloqueado por préstamos activos."""

    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class UnavailableError(LibraryError):
    """No quedan copias disponibles."""

    kind = "unavailable"
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(LibraryError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidStateError(LibraryError):
    """Transición de estado ilegal (p.ej. devolver dos veces)."""

    kind = "invalid_state"
    status_code = status.HTTP_409_CONFLICT
