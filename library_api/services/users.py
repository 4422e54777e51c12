from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from library_api.core.config import settings
from library_api.core.errors import ConflictError
from library_api.core.security import hash_password, verify_password
from library_api.db.models import User, UserRole


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == email)).scalars().first()


def get_users_by_ids(db: Session, user_ids: Iterable[int]) -> Dict[int, User]:
    ids = set(user_ids)
    if not ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(ids))).scalars().all()
    return {u.id: u for u in users}


def create_user(
    db: Session,
    email: str,
    full_name: str,
    password: str,
    role: UserRole = UserRole.PATRON,
    is_active: bool = True,
) -> User:
    if find_user_by_email(db, email):
        raise ConflictError("Email already registered")

    user = User(
        email=email,
        full_name=full_name,
        hashed_password=hash_password(password),
        role=role,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    user = find_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def ensure_builtin_admin(db: Session) -> None:
    """Crea el admin embebido si no existe (se llama en el startup)."""
    if find_user_by_email(db, settings.BUILTIN_ADMIN_EMAIL):
        return

    admin = User(
        email=settings.BUILTIN_ADMIN_EMAIL,
        full_name="Built-in Admin",
        hashed_password=hash_password(settings.BUILTIN_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
