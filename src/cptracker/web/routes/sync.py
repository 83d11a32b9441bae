"""On-demand sync endpoint."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from cptracker.core.sync_orchestrator import StudentNotFound, SyncOrchestrator
from cptracker.web.deps import get_orchestrator
from cptracker.web.schemas import StudentSyncResponse, SyncAllResponse, SyncRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("", response_model=StudentSyncResponse | SyncAllResponse)
def sync_students(
    request: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> StudentSyncResponse | SyncAllResponse:
    """Sync one student, or every active student when no id is given.

    No inactivity checks or reminders run here.
    """
    if request.student_id:
        try:
            result = orchestrator.sync_student(request.student_id, force=request.force_sync)
        except StudentNotFound as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        return StudentSyncResponse(**result.to_dict())

    results = orchestrator.sync_all(force=request.force_sync)
    logger.info("sync.on_demand_finished", students=len(results))
    return SyncAllResponse(results=[StudentSyncResponse(**r.to_dict()) for r in results])
