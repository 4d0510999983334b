from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import PlainTextResponse

from app.api.deps import get_components, require_admin_token
from app.core.config import get_settings
from app.schemas.admin import ProcessingRecordOut, ReprocessResponse, StatusOut, SweepStartedResponse, SyncRunOut
from app.services.admin import get_record, get_status, list_sync_runs, start_reprocess, start_sweep, tail_log
from worker.factory import Components

router = APIRouter(prefix="/v1/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])


@router.post("/sweep", response_model=SweepStartedResponse, status_code=202)
def sweep(
    background_tasks: BackgroundTasks,
    force: bool = Query(default=False),
    components: Components = Depends(get_components),
) -> SweepStartedResponse:
    return start_sweep(components, force, background_tasks)


@router.post("/items/{item_id}/reprocess", response_model=ReprocessResponse, status_code=202)
def reprocess(
    item_id: str,
    background_tasks: BackgroundTasks,
    components: Components = Depends(get_components),
) -> ReprocessResponse:
    return start_reprocess(components, item_id, background_tasks)


@router.get("/sync-runs", response_model=list[SyncRunOut])
def sync_runs(
    limit: int = Query(default=50, ge=1, le=500),
    components: Components = Depends(get_components),
) -> list[SyncRunOut]:
    return list_sync_runs(components, limit=limit)


@router.get("/records/{item_id}", response_model=ProcessingRecordOut)
def record(item_id: str, components: Components = Depends(get_components)) -> ProcessingRecordOut:
    return get_record(components, item_id)


@router.get("/status", response_model=StatusOut)
def status(components: Components = Depends(get_components)) -> StatusOut:
    return get_status(components)


@router.get("/logs", response_class=PlainTextResponse)
def logs(
    lines: int = Query(default=200, ge=1),
    components: Components = Depends(get_components),
) -> str:
    limit = min(lines, get_settings().logs_tail_max_lines)
    return tail_log(components.settings.log_file, limit)
