from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from maintenance_hub.api.routers import audit_logs, auth, machines, maintenance_schedules, reports, users
from maintenance_hub.infra.config import get_settings
from maintenance_hub.infra.db import check_db_ready
from maintenance_hub.infra.log_config import configure_logging

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings)

app = FastAPI(
    title="maintenance-hub",
    description="Industrial maintenance scheduling, intervention reports and attachments.",
    version="0.1.0",
)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    content: dict[str, str] = {"detail": "internal server error"}
    if not get_settings().is_production:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(machines.router, prefix="/api/machines", tags=["machines"])
app.include_router(
    maintenance_schedules.router,
    prefix="/api/maintenance-schedules",
    tags=["maintenance-schedules"],
)
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])
app.include_router(audit_logs.router, prefix="/api/audit-logs", tags=["audit"])

settings.upload_dir.mkdir(parents=True, exist_ok=True)
app.mount(settings.public_upload_prefix, StaticFiles(directory=str(settings.upload_dir)), name="uploads")


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
