from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pingwatch.config import get_settings
from pingwatch.dependencies import get_recorder, get_repository
from pingwatch.errors import InvalidScheduleError, NotFoundError
from pingwatch.locks import check_locks
from pingwatch.models.check import Check
from pingwatch.notifier import ping_url
from pingwatch.probe import run_probe
from pingwatch.recorder import PingRecorder
from pingwatch.repository import CheckRepository
from pingwatch.schedule import as_utc
from pingwatch.scheduler import scheduler, schedule_probe, unschedule_probe
from pingwatch.schemas import (
    CheckCreate,
    CheckResponse,
    CheckStatusResponse,
    CheckUpdate,
    PingResponse,
)
from pingwatch.status import compute_status

router = APIRouter(prefix="/api/checks", tags=["checks"])
settings = get_settings()

# Columns that may legitimately be cleared with an explicit null
NULLABLE_FIELDS = {"description", "cron_expression", "http_config"}


def _to_response(check: Check) -> CheckResponse:
    return CheckResponse.model_validate(check).model_copy(
        update={
            "ping_url": ping_url(check.id),
            "last_ping": as_utc(check.last_ping),
            "next_ping_due": as_utc(check.next_ping_due),
        }
    )


def _sync_probe(check: Check, repository: CheckRepository, recorder: PingRecorder) -> None:
    if scheduler.running:
        schedule_probe(check, repository, recorder)


async def _get_or_404(repository: CheckRepository, check_id: str) -> Check:
    check = await repository.get(check_id)
    if not check:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Check not found",
        )
    return check


@router.get("", response_model=list[CheckResponse])
async def list_checks(repository: CheckRepository = Depends(get_repository)):
    checks = await repository.list_checks()
    return [_to_response(c) for c in checks]


@router.post("", response_model=CheckResponse, status_code=201)
async def create_check(
    body: CheckCreate,
    repository: CheckRepository = Depends(get_repository),
    recorder: PingRecorder = Depends(get_recorder),
):
    fields = body.model_dump(exclude={"http_config"})
    fields["http_config"] = body.http_config.model_dump() if body.http_config else None

    try:
        check = await repository.create(**fields)
    except InvalidScheduleError as e:
        raise HTTPException(status_code=422, detail=str(e))

    _sync_probe(check, repository, recorder)
    return _to_response(check)


@router.get("/{check_id}", response_model=CheckResponse)
async def get_check(check_id: str, repository: CheckRepository = Depends(get_repository)):
    check = await _get_or_404(repository, check_id)
    return _to_response(check)


@router.get("/{check_id}/status", response_model=CheckStatusResponse)
async def get_check_status(check_id: str, repository: CheckRepository = Depends(get_repository)):
    check = await _get_or_404(repository, check_id)
    now = datetime.now(timezone.utc)
    return CheckStatusResponse(
        check_id=check.id,
        status=compute_status(check, now).value,
        stored_status=check.status,
        last_ping=as_utc(check.last_ping),
        next_ping_due=as_utc(check.next_ping_due),
        evaluated_at=now,
    )


@router.get("/{check_id}/pings", response_model=list[PingResponse])
async def list_check_pings(
    check_id: str,
    limit: int = Query(settings.ping_history_limit, ge=1, le=1000),
    repository: CheckRepository = Depends(get_repository),
):
    await _get_or_404(repository, check_id)
    pings = await repository.list_pings(check_id, limit=limit, order="desc")
    return [
        PingResponse.model_validate(p).model_copy(update={"timestamp": as_utc(p.timestamp)})
        for p in pings
    ]


@router.post("/{check_id}/probe")
async def probe_check(
    check_id: str,
    repository: CheckRepository = Depends(get_repository),
    recorder: PingRecorder = Depends(get_recorder),
):
    check = await _get_or_404(repository, check_id)
    if check.type != "http_request" or not check.http_config:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only HTTP request checks can be probed",
        )

    try:
        result = await run_probe(check_id, repository, recorder)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Check not found")

    check = await _get_or_404(repository, check_id)
    return {
        "result": asdict(result),
        "check": _to_response(check).model_dump(mode="json"),
    }


@router.patch("/{check_id}", response_model=CheckResponse)
async def update_check(
    check_id: str,
    body: CheckUpdate,
    repository: CheckRepository = Depends(get_repository),
    recorder: PingRecorder = Depends(get_recorder),
):
    check = await _get_or_404(repository, check_id)

    update_data = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    if "http_config" in update_data:
        update_data["http_config"] = body.http_config.model_dump() if body.http_config else None

    # Validate the schedule the check will end up with
    cron_expression = update_data.get("cron_expression", check.cron_expression)
    period = update_data.get("period", check.period)
    if "period" in update_data and "cron_expression" not in update_data:
        cron_expression = None
    if not cron_expression and not period:
        raise HTTPException(
            status_code=422,
            detail="A check needs either a period or a cron expression",
        )

    check_type = update_data.get("type", check.type)
    http_config = update_data.get("http_config", check.http_config)
    if check_type == "http_request" and not http_config:
        raise HTTPException(
            status_code=422,
            detail="HTTP request checks need an http_config",
        )

    try:
        async with check_locks.lock(check_id):
            check = await repository.update(check_id, **update_data)
    except InvalidScheduleError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if check is None:
        raise HTTPException(status_code=404, detail="Check not found")

    _sync_probe(check, repository, recorder)
    return _to_response(check)


@router.delete("/{check_id}", status_code=204)
async def delete_check(check_id: str, repository: CheckRepository = Depends(get_repository)):
    async with check_locks.lock(check_id):
        deleted = await repository.delete(check_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Check not found",
        )

    if scheduler.running:
        unschedule_probe(check_id)
    check_locks.discard(check_id)
