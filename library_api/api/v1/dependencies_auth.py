from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.core.logging import user_id_ctx
from library_api.core.security import decode_access_token
from library_api.db.models import User, UserRole
from library_api.schemas.auth import ActingUser


# Esta URL debe coincidir con el endpoint de login
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> ActingUser:
    """
    Resuelve el token JWT en la identidad {id, role} del usuario.
    Lanza 401 si el token no es válido y 403 si el usuario está inactivo.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user = db.get(User, payload["user_id"])
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is inactive",
        )

    # Guardar user_id para el logging estructurado
    user_id_ctx.set(user.id)

    # El rol sale de la base de datos, no del token (puede haber cambiado)
    return ActingUser(id=user.id, role=user.role)


def require_admin(current_user: ActingUser = Depends(get_current_user)) -> ActingUser:
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user
