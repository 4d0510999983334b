from pydantic import BaseModel


class SweepStartedResponse(BaseModel):
    status: str
    force: bool


class ReprocessResponse(BaseModel):
    status: str
    item_id: str


class SyncRunOut(BaseModel):
    id: str
    status: str
    force: bool
    items_total: int
    items_processed: int
    items_skipped: int
    items_failed: int
    error_summary: str | None
    started_at: str
    finished_at: str | None


class ProcessingRecordOut(BaseModel):
    item_id: str
    last_processed_at: str
    content_fingerprint: str | None
    external_refs: dict[str, str]


class StatusOut(BaseModel):
    status: str
    records: int
    sweep_running: bool
    in_flight: list[str]
    last_run: SyncRunOut | None
