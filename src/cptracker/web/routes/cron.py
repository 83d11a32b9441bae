"""Cron trigger endpoint.

External schedulers POST here with ``Authorization: Bearer <secret>`` to
run a full batch: sync every active student, check inactivity and send
reminders.
"""

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from cptracker.core.sync_orchestrator import BatchAlreadyRunning, SyncOrchestrator
from cptracker.utils.time_utils import to_iso, utc_now
from cptracker.web.deps import get_cron_secret, get_orchestrator
from cptracker.web.schemas import CronSyncResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/cron", tags=["cron"])


def _check_authorization(authorization: str | None, secret: str | None) -> None:
    """Compare the header with the configured bearer secret.

    Without a configured secret the trigger is open.

    Raises:
        HTTPException: 401 if the header does not match
    """
    if not secret:
        return
    if authorization != f"Bearer {secret}":
        logger.warning("cron.unauthorized", has_header=authorization is not None)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


@router.post(
    "/sync",
    response_model=CronSyncResponse,
    responses={401: {}, 409: {}, 500: {}},
)
def cron_sync(
    authorization: str | None = Header(default=None),
    secret: str | None = Depends(get_cron_secret),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run the daily batch."""
    _check_authorization(authorization, secret)

    logger.info("cron.triggered")
    try:
        batch = orchestrator.run_batch()
    except BatchAlreadyRunning as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except Exception as e:
        logger.exception("cron.failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Cron job failed", "details": str(e) or type(e).__name__},
        )

    results = batch.to_dict()
    return CronSyncResponse(
        success=True,
        message="Cron job completed successfully",
        timestamp=to_iso(utc_now()),
        results={
            "sync_results": results["sync_results"],
            "inactivity_results": results["inactivity_results"],
            "email_results": results["email_results"],
        },
    )
