"""Entry point of the external periodic trigger."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from loguru import logger

from src.api.constants import CRON_PREFIX
from src.api.dependencies import SweepRunnerDep, verify_cron_secret
from src.notifications.schemas import SweepReport

router = APIRouter(prefix=CRON_PREFIX, tags=["cron"])


@router.post(
    "/check-overdue",
    response_model=SweepReport,
    dependencies=[Depends(verify_cron_secret)],
)
async def run_sweeps(run: SweepRunnerDep) -> SweepReport:
    """Run the overdue, reminder and retention sweeps.

    Responds 200 with per-sweep results even when some sweeps failed;
    ``success`` tells whether all of them succeeded.
    """
    logger.info("Starting scheduled sweeps")
    return await run()


@router.get("/check-overdue")
async def sweep_status() -> dict[str, object]:
    """Status probe for manual checks of the trigger endpoint."""
    return {
        "success": True,
        "message": "Cron endpoint is working",
        "timestamp": datetime.now(UTC).isoformat(),
    }
