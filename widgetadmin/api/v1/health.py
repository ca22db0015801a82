"""Health check endpoint. Public; reports database reachability without failing."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from widgetadmin.core.config import settings
from widgetadmin.core.database import check_db_connected, get_db
from widgetadmin.schemas.health import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
def get_health(db: Annotated[Session, Depends(get_db)]) -> HealthResponse:
    db_status = "connected" if check_db_connected(db) else "disconnected"
    return HealthResponse(status="ok", environment=settings.APP_ENV, database=db_status)
