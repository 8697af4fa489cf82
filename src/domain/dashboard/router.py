from typing import Annotated

from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from src.app.schemas import DashboardSummary
from src.core.database import get_session
from src.core.security import CurrentActor
from src.domain.dashboard.service import dashboard_summary

router = APIRouter(prefix="/api/v1", tags=["Dashboard"])


@router.get("/dashboard")
async def dashboard(actor: CurrentActor, session: Annotated[AsyncSession, Depends(get_session)]) -> DashboardSummary:
    """Headline counters for the landing screen, scoped to what the actor can read."""
    return await dashboard_summary(session, actor)
