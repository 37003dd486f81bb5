"""User management API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from authledger.api.auth import user_response
from authledger.api.deps import get_current_user_id, get_db, get_user_service, require_admin
from authledger.roles import Role
from authledger.schemas.auth import MessageResponse, NamesUpdate, UserResponse
from authledger.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


def parse_role(role: str) -> Role:
    try:
        return Role.from_claim(role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Unknown role",
        )


@router.get("", response_model=list[UserResponse], dependencies=[Depends(require_admin)])
def list_users(
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """List all users with their roles."""
    return [user_response(user) for user in users.list_users(db)]


@router.patch("/me", response_model=UserResponse)
def update_my_names(
    body: NamesUpdate,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
    user_id: str = Depends(get_current_user_id),
):
    """Change the caller's first and last name."""
    return user_response(users.update_names(db, user_id, body.first_name, body.last_name))


@router.delete("/{login}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
def delete_user(
    login: str,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Delete a user by login."""
    users.delete(db, login)


@router.post("/{user_id}/roles/{role}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def grant_role(
    user_id: str,
    role: str,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Grant a role; the user's active tokens are revoked."""
    users.grant_role(db, user_id, parse_role(role))
    return MessageResponse(message="Role granted")


@router.delete("/{user_id}/roles/{role}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def remove_role(
    user_id: str,
    role: str,
    db: Session = Depends(get_db),
    users: UserService = Depends(get_user_service),
):
    """Remove a role; the user's active tokens are revoked."""
    users.remove_role(db, user_id, parse_role(role))
    return MessageResponse(message="Role removed")
