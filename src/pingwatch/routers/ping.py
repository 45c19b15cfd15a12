"""
Public ping ingress.

Automated callers are always recorded. Interactive browser visits are
recorded at most once per calendar day per browser session.
"""
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from pingwatch.dependencies import get_recorder
from pingwatch.errors import NotFoundError
from pingwatch.recorder import PING_STATUSES, PingRecorder
from pingwatch.schemas import PingReceipt

router = APIRouter(prefix="/ping", tags=["ping"])

CLIENT_HEADER = "x-ping-client"


def is_interactive_visit(request: Request) -> bool:
    """True for a browser opening the ping URL, False for scripts and API clients."""
    if request.headers.get(CLIENT_HEADER):
        return False
    user_agent = request.headers.get("user-agent", "")
    accept = request.headers.get("accept", "")
    return user_agent.startswith("Mozilla/") and "text/html" in accept


def dedup_cookie_name(check_id: str) -> str:
    return f"pw_ping_{check_id}"


async def _handle_ping(
    check_id: str,
    ping_status: str,
    request: Request,
    response: Response,
    recorder: PingRecorder,
) -> PingReceipt:
    if ping_status not in PING_STATUSES:
        raise HTTPException(
            status_code=422,
            detail=f"Ping status must be one of: {', '.join(PING_STATUSES)}",
        )

    now = datetime.now(timezone.utc)
    today = now.date().isoformat()
    interactive = is_interactive_visit(request)
    cookie_name = dedup_cookie_name(check_id)

    if interactive and request.cookies.get(cookie_name) == today:
        return PingReceipt(
            check_id=check_id,
            status=ping_status,
            recorded=False,
            message="Ping already recorded today from this browser session",
        )

    try:
        await recorder.record_ping(check_id, ping_status, now)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Check not found")

    if interactive:
        # Session cookie: no max_age, dropped when the browser session ends
        response.set_cookie(
            key=cookie_name,
            value=today,
            httponly=True,
            samesite="lax",
        )

    return PingReceipt(
        check_id=check_id,
        status=ping_status,
        recorded=True,
        message="Ping received",
    )


@router.api_route("/{check_id}", methods=["GET", "POST"], response_model=PingReceipt)
async def ping(
    check_id: str,
    request: Request,
    response: Response,
    recorder: PingRecorder = Depends(get_recorder),
):
    return await _handle_ping(check_id, "success", request, response, recorder)


@router.api_route("/{check_id}/{ping_status}", methods=["GET", "POST"], response_model=PingReceipt)
async def ping_with_status(
    check_id: str,
    ping_status: str,
    request: Request,
    response: Response,
    recorder: PingRecorder = Depends(get_recorder),
):
    return await _handle_ping(check_id, ping_status, request, response, recorder)
