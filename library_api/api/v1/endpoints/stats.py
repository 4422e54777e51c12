from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from library_api.api.v1.dependencies import get_db
from library_api.api.v1.dependencies_auth import get_current_user
from library_api.schemas.stats import StatsSummary
from library_api.services import stats

router = APIRouter(
    prefix="/api/v1/stats",
    tags=["stats"],
)


@router.get("/summary", response_model=StatsSummary, dependencies=[Depends(get_current_user)])
def get_summary(db: Session = Depends(get_db)):
    """Resumen de inventario y préstamos para el dashboard."""
    return stats.summary(db)
