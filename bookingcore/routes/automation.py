"""
API endpoints for the reminder automation
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..services.scheduler import AutomationScheduler

router = APIRouter(prefix="/automation", tags=["automation"])


def get_scheduler(request: Request) -> AutomationScheduler:
    return request.app.state.automation_scheduler


@router.post("/run")
async def run_automation(request: Request):
    """
    Manually trigger one automation cycle.
    Skipped with 409 when a cycle is already in flight; 500 when the run raised.
    """
    scheduler = get_scheduler(request)
    ran = await scheduler.tick()
    if not ran:
        return JSONResponse(
            status_code=409,
            content={"detail": "Automation cycle already running", "ran": False},
        )
    if scheduler.last_error:
        return JSONResponse(
            status_code=500,
            content={"detail": "Automation cycle failed", "ran": True, "error": scheduler.last_error},
        )
    return {
        "ran": True,
        "summary": scheduler.last_summary.to_dict() if scheduler.last_summary else None,
    }


@router.get("/status")
async def get_automation_status(request: Request):
    """Scheduler state and the last run summary"""
    return get_scheduler(request).status()
