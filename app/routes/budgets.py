"""
Budget endpoints.

spentAmount is kept up to date by the transaction endpoints;
/recalculate rebuilds it from the transactions when it has drifted.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status

from app.dependencies import UserId, get_components
from src.models.finance import (
    YEAR_MAX,
    YEAR_MIN,
    Budget,
    BudgetCreate,
    BudgetUpdate,
    BudgetVsActual,
)
from src.orchestrator import AppComponents
from src.services.storage import NotFoundError


router = APIRouter(prefix="/api/budgets", tags=["budgets"])


@router.get("", response_model=list[Budget])
def list_budgets(
    user_id: UserId,
    month: Optional[int] = Query(default=None, ge=1, le=12),
    year: Optional[int] = Query(default=None, ge=YEAR_MIN, le=YEAR_MAX),
    components: AppComponents = Depends(get_components),
):
    return components.budgets.find_by_user(user_id, month=month, year=year)


@router.post("", response_model=Budget, status_code=status.HTTP_201_CREATED)
def create_budget(
    payload: BudgetCreate,
    components: AppComponents = Depends(get_components),
):
    return components.budget_flow.create(payload)


@router.get("/analytics/vs-actual/{year}", response_model=list[BudgetVsActual])
def budget_vs_actual(
    user_id: UserId,
    year: int = Path(..., ge=YEAR_MIN, le=YEAR_MAX),
    components: AppComponents = Depends(get_components),
):
    return components.budgets.get_budget_vs_actual(user_id, year)


@router.get("/{budget_id}", response_model=Budget)
def get_budget(
    budget_id: str,
    components: AppComponents = Depends(get_components),
):
    budget = components.budgets.get_by_id(budget_id)
    if budget is None:
        raise NotFoundError("Budget not found")
    return budget


@router.put("/{budget_id}")
def update_budget(
    budget_id: str,
    payload: BudgetUpdate,
    components: AppComponents = Depends(get_components),
):
    components.budget_flow.update(budget_id, payload)
    return {"message": "Budget updated successfully"}


@router.delete("/{budget_id}")
def delete_budget(
    budget_id: str,
    components: AppComponents = Depends(get_components),
):
    components.budget_flow.delete(budget_id)
    return {"message": "Budget deleted successfully"}


@router.post("/{budget_id}/recalculate", response_model=Budget)
def recalculate_budget(
    budget_id: str,
    components: AppComponents = Depends(get_components),
):
    return components.budget_flow.recalculate_spent(budget_id)
