"""Authentication API endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from authledger.api.deps import get_current_user_id, get_db, get_token_service, get_user_service
from authledger.errors import InvalidCredentialError, UserNotFound
from authledger.schemas.auth import (
    MessageResponse,
    PasswordChange,
    RecoveryRedeem,
    RecoveryRequest,
    Token,
    TokenRefresh,
    UserLogin,
    UserRegister,
    UserResponse,
)
from authledger.services.token_service import TokenPair, TokenService
from authledger.services.user_service import Registration, UserService

router = APIRouter(prefix="/auth", tags=["auth"])
password_router = APIRouter(prefix="/password", tags=["password"])


def token_response(pair: TokenPair) -> Token:
    return Token(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        access_expires_at=pair.access_expire_at,
        refresh_expires_at=pair.refresh_expire_at,
    )


def user_response(user) -> UserResponse:
    return UserResponse(
        id=user.id,
        login=user.login,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        age=user.age,
        roles=[role.claim for role in user.roles],
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Register a new user."""
    user = users.register(db, Registration(**user_data.model_dump()))
    return user_response(user)


@router.post("/login", response_model=Token)
def login(
    user_data: UserLogin,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Login and get a token pair."""
    try:
        pair = tokens.sign_in(db, user_data.login, user_data.password)
    except (UserNotFound, InvalidCredentialError):
        # Never reveal which half of the credential pair was wrong
        raise InvalidCredentialError() from None
    return token_response(pair)


@router.post("/refresh", response_model=Token)
def refresh_tokens(
    body: TokenRefresh,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Exchange a refresh token for a new pair."""
    return token_response(tokens.refresh(db, body.refresh_token))


@router.post("/logout", response_model=MessageResponse)
def logout(
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    user_id: str = Depends(get_current_user_id),
):
    """Revoke every active token of the current user."""
    tokens.revoke_all(db, user_id)
    return MessageResponse(message="Successfully logged out")


@password_router.post("", response_model=MessageResponse)
def change_password(
    body: PasswordChange,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    user_id: str = Depends(get_current_user_id),
):
    """Change the caller's password given the current one."""
    users.change_own_password(db, user_id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed")


@password_router.post("/recovery", response_model=MessageResponse)
def send_recovery_email(
    body: RecoveryRequest,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Send a recovery link; the response is the same whether or not the address is known."""
    tokens.request_recovery(db, body.email)
    return MessageResponse(message="If the address is registered, a recovery email is on its way")


@password_router.post("/recovery/redeem", response_model=MessageResponse)
def redeem_recovery(
    body: RecoveryRedeem,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    """Set a new password with a recovery token."""
    tokens.redeem_recovery(db, body.token, body.new_password)
    return MessageResponse(message="Password changed")
