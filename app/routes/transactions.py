"""
Transaction endpoints.

Writes go through TransactionFlow so the matching budget's spent
counter follows every create, edit and delete.
"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.dependencies import UserId, get_components, naive_utc
from src.models.finance import (
    YEAR_MAX,
    YEAR_MIN,
    CategoryTotal,
    MonthlyTotal,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
)
from src.orchestrator import AppComponents
from src.services.storage import NotFoundError


router = APIRouter(prefix="/api/transactions", tags=["transactions"])

SortField = Literal["date", "amount", "category", "description", "createdAt", "updatedAt"]


@router.get("", response_model=list[Transaction])
def list_transactions(
    user_id: UserId,
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
    category: Optional[str] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    sort_by: SortField = Query(default="date", alias="sortBy"),
    sort_order: int = Query(default=-1, alias="sortOrder", ge=-1, le=1),
    components: AppComponents = Depends(get_components),
):
    if sort_order == 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="sortOrder must be 1 or -1",
        )

    return components.transactions.find_by_user(
        user_id,
        limit=limit or components.settings.default_page_size,
        skip=skip,
        sort_by=sort_by,
        sort_order=sort_order,
        category=category,
        start_date=naive_utc(start_date),
        end_date=naive_utc(end_date),
    )


@router.post("", response_model=Transaction, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate,
    components: AppComponents = Depends(get_components),
):
    return components.transaction_flow.create(payload)


@router.get("/analytics/monthly/{year}", response_model=list[MonthlyTotal])
def monthly_totals(
    user_id: UserId,
    year: int = Path(..., ge=YEAR_MIN, le=YEAR_MAX),
    components: AppComponents = Depends(get_components),
):
    return components.transactions.get_monthly_totals(user_id, year)


@router.get("/analytics/categories", response_model=list[CategoryTotal])
def category_totals(
    user_id: UserId,
    start_date: datetime = Query(..., alias="startDate"),
    end_date: datetime = Query(..., alias="endDate"),
    components: AppComponents = Depends(get_components),
):
    return components.transactions.get_category_totals(
        user_id,
        naive_utc(start_date),
        naive_utc(end_date),
    )


@router.get("/{transaction_id}", response_model=Transaction)
def get_transaction(
    transaction_id: str,
    components: AppComponents = Depends(get_components),
):
    transaction = components.transactions.get_by_id(transaction_id)
    if transaction is None:
        raise NotFoundError("Transaction not found")
    return transaction


@router.put("/{transaction_id}", response_model=Transaction)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    components: AppComponents = Depends(get_components),
):
    return components.transaction_flow.update(transaction_id, payload)


@router.delete("/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    components: AppComponents = Depends(get_components),
):
    components.transaction_flow.delete(transaction_id)
    return {"success": True}
