"""User endpoints. Registration also creates the default categories."""

from fastapi import APIRouter, Depends, status

from app.dependencies import get_components
from src.models.finance import User, UserCreate, UserUpdate
from src.orchestrator import AppComponents
from src.services.storage import NotFoundError


router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=User, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    components: AppComponents = Depends(get_components),
):
    return components.user_flow.register(payload)


@router.get("/email/{email}", response_model=User)
def get_user_by_email(
    email: str,
    components: AppComponents = Depends(get_components),
):
    user = components.users.get_by_email(email)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("/{user_id}", response_model=User)
def get_user(
    user_id: str,
    components: AppComponents = Depends(get_components),
):
    user = components.users.get_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.put("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    components: AppComponents = Depends(get_components),
):
    components.user_flow.update(user_id, payload)
    return {"message": "User updated successfully"}
