from pydantic import BaseModel

from library_api.db.models import UserRole


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ActingUser(BaseModel):
    """Identidad verificada del usuario que hace la petición."""

    id: int
    role: UserRole
