"""
Request dependencies shared by the route modules.

The application components live on `app.state` and are built on first
use, so the API can start (and report unhealthy) without a database.
"""

from datetime import datetime
from typing import Annotated, Optional

from fastapi import Query, Request

from src.models.finance import as_naive_utc
from src.orchestrator import AppComponents, create_app_components


# Every list and analytics call is scoped to one owner
UserId = Annotated[str, Query(alias="userId", min_length=1)]


def get_components(request: Request) -> AppComponents:
    components = request.app.state.components
    if components is None:
        components = create_app_components()
        request.app.state.components = components
    return components


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored dates are naive UTC; query bounds must be too."""
    return as_naive_utc(value) if value is not None else None
