# messenger/api/auth.py
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm

from messenger.api.dependencies import (
    get_current_active_user,
    get_security_service,
    get_user_interactor,
)
from messenger.infrastructure import schemas
from messenger.infrastructure.security import SecurityService
from messenger.interactors.user_interactor import UserInteractor

router = APIRouter()


def issue_tokens(
    security_service: SecurityService, user: schemas.User
) -> schemas.TokenResponse:
    access_token, access_expire = security_service.create_access_token(user.id)
    refresh_token, _ = security_service.create_refresh_token(user.id)
    return schemas.TokenResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_at=access_expire,
        user_id=user.id,
    )


@router.post("/login", response_model=schemas.TokenResponse)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    user_interactor: UserInteractor = Depends(get_user_interactor),
    security_service: SecurityService = Depends(get_security_service),
):
    user = await user_interactor.verify_user_password(
        form_data.username, form_data.password
    )
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Inactive user",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return issue_tokens(security_service, user)


@router.post("/register", response_model=schemas.User)
async def register_user(
    user: schemas.UserCreate,
    user_interactor: UserInteractor = Depends(get_user_interactor),
):
    return await user_interactor.create_user(user)


@router.post("/refresh", response_model=schemas.TokenResponse)
async def refresh_token(
    refresh_token_request: schemas.RefreshTokenRequest,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    security_service: SecurityService = Depends(get_security_service),
):
    user_id = security_service.decode_refresh_token(
        refresh_token_request.refresh_token
    )
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_interactor.get_user(user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return issue_tokens(security_service, user)


@router.post("/change-password")
async def change_password(
    password_change: schemas.PasswordChange,
    user_interactor: UserInteractor = Depends(get_user_interactor),
    current_user: schemas.User = Depends(get_current_active_user),
):
    await user_interactor.change_password(
        current_user.id,
        password_change.current_password,
        password_change.new_password,
    )
    return {"message": "Password changed successfully"}
