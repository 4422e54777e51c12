from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.core.logging import get_logger
from library_api.core.security import create_access_token
from library_api.db.models import UserRole
from library_api.schemas.auth import Token
from library_api.schemas.user import UserRead, UserRegister
from library_api.services import users

logger = get_logger("api.auth")

router = APIRouter(
    prefix="/api/v1/auth",
    tags=["auth"],
)


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserRegister,
    db: Session = Depends(get_db),
):
    # Auto-registro: siempre como patron
    user = users.create_user(
        db,
        email=payload.email,
        full_name=payload.full_name,
        password=payload.password,
        role=UserRole.PATRON,
    )

    logger.info(
        "user_registered",
        extra={
            "operation": "auth_register",
            "resource": "user",
            "user_id": user.id,
            "status_code": 201,
        },
    )
    return user


@router.post("/login", response_model=Token)
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    # username se usa como email
    email = form_data.username
    client_ip = request.client.host if request.client else None

    user = users.authenticate(db, email, form_data.password)
    if user is None or not user.is_active:
        logger.warning(
            "login_failed",
            extra={
                "operation": "auth_login",
                "resource": "user",
                "email": email,
                "status_code": 401,
                "ip": client_ip,
            },
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )

    access_token = create_access_token(user_id=user.id, role=user.role.value)

    logger.info(
        "login_success",
        extra={
            "operation": "auth_login",
            "resource": "user",
            "email": email,
            "status_code": 200,
            "ip": client_ip,
        },
    )
    return Token(access_token=access_token)
