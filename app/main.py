from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api.routes import admin, webhooks
from app.core.config import get_settings
from worker.config import get_settings as get_worker_settings
from worker.logging_config import configure_logging

settings = get_settings()
app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def startup() -> None:
    worker_settings = get_worker_settings()
    configure_logging(worker_settings.log_level, worker_settings.log_file)


@app.on_event("shutdown")
async def shutdown() -> None:
    components = getattr(app.state, "components", None)
    if components is not None:
        await components.aclose()
        app.state.components = None


@app.exception_handler(RequestValidationError)
def request_validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"code": "validation_error", "message": "Invalid request", "details": exc.errors()})


app.include_router(webhooks.router)
app.include_router(admin.router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
