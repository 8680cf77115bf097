"""Health check endpoint with database connectivity and realtime presence counts."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from backoffice.api.v1.deps import Gateway, get_app_settings
from backoffice.core.config import Settings
from backoffice.core.database import check_db_connected, get_db
from backoffice.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
async def get_health(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    gateway: Gateway,
) -> HealthResponse:
    """
    Return service health status, database connectivity and online user count.
    Used by load balancers and monitoring.
    """
    db_status = "connected" if await run_in_threadpool(check_db_connected, db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
        online_users=len(await gateway.list_online()),
    )
