from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from saaskit.api.deps import get_providers, get_settings
from saaskit.services.status import build_system_report, collect_service_statuses

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.get("/system-status")
async def system_status(request: Request) -> JSONResponse:
    try:
        statuses = await collect_service_statuses(get_providers(request))
        report = build_system_report(statuses, get_settings(request).environment)
    except Exception:
        logger.exception("system_status.failed")
        return JSONResponse({"error": "Failed to check system status"}, status_code=500)
    if report["status"] != "ok":
        logger.warning("system_status.issues services=%s", [s.name for s in statuses if not (s.configured and s.connected)])
    return JSONResponse(report, headers={"Cache-Control": "no-store, max-age=0"})
