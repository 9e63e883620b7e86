"""Category endpoints, including the default set bootstrap."""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.dependencies import UserId, get_components
from src.models.finance import Category, CategoryCreate, CategoryInitialize, CategoryUpdate
from src.orchestrator import AppComponents
from src.services.storage import NotFoundError


router = APIRouter(prefix="/api/categories", tags=["categories"])


@router.get("", response_model=list[Category])
def list_categories(
    user_id: UserId,
    components: AppComponents = Depends(get_components),
):
    return components.categories.find_by_user(user_id)


@router.post("", response_model=Category, status_code=status.HTTP_201_CREATED)
def create_category(
    payload: CategoryCreate,
    components: AppComponents = Depends(get_components),
):
    return components.category_flow.create(payload)


@router.post("/initialize")
def initialize_categories(
    payload: CategoryInitialize,
    components: AppComponents = Depends(get_components),
):
    inserted = components.category_flow.initialize_defaults(payload.user_id)
    if inserted is None:
        return {"message": "Default categories already exist"}
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={
            "message": "Default categories initialized successfully",
            "count": inserted,
        },
    )


@router.get("/{category_id}", response_model=Category)
def get_category(
    category_id: str,
    components: AppComponents = Depends(get_components),
):
    category = components.categories.get_by_id(category_id)
    if category is None:
        raise NotFoundError("Category not found")
    return category


@router.put("/{category_id}")
def update_category(
    category_id: str,
    payload: CategoryUpdate,
    components: AppComponents = Depends(get_components),
):
    components.category_flow.update(category_id, payload)
    return {"message": "Category updated successfully"}


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    components: AppComponents = Depends(get_components),
):
    components.category_flow.delete(category_id)
    return {"message": "Category deleted successfully"}
