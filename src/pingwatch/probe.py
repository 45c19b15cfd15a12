"""
HTTP probe for ``http_request`` checks.

Performs the configured request and records the outcome as a ping: a
success resets the check like any heartbeat. A failure keeps its error text
on the ping and leaves the check to age into grace and down on its own.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from pingwatch.config import get_settings
from pingwatch.errors import NotFoundError
from pingwatch.recorder import PingRecorder
from pingwatch.repository import CheckRepository
from pingwatch.schemas import HttpConfig

logger = logging.getLogger("pingwatch.probe")
settings = get_settings()

BODY_METHODS = {"POST", "PUT", "PATCH"}


@dataclass
class ProbeResult:
    success: bool
    request_url: str
    method: str
    status_code: Optional[int] = None
    duration_ms: int = 0
    timed_out: bool = False
    error: Optional[str] = None


def _auth_options(config: HttpConfig) -> tuple[dict[str, str], Optional[tuple[str, str]]]:
    auth = config.auth
    if auth is None or auth.type == "none":
        return {}, None
    if auth.type == "bearer" and auth.token:
        return {"Authorization": f"Bearer {auth.token}"}, None
    if auth.type == "basic" and auth.username and auth.password:
        return {}, (auth.username, auth.password)
    return {}, None


async def execute_http_request(config: HttpConfig, timeout: Optional[float] = None) -> ProbeResult:
    """Run the request described by ``config``. Network errors become failed results."""
    timeout = timeout or settings.probe_timeout
    request_url = str(httpx.URL(config.url).copy_merge_params(config.params)) if config.params else config.url
    auth_headers, basic_auth = _auth_options(config)
    headers = {**config.headers, **auth_headers}
    content = config.body if config.method in BODY_METHODS and config.body else None

    result = ProbeResult(success=False, request_url=request_url, method=config.method)
    start = time.monotonic()
    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
        ) as client:
            response = await client.request(
                config.method,
                request_url,
                headers=headers,
                content=content,
                auth=basic_auth,
            )
        result.status_code = response.status_code
        result.success = response.status_code in config.success_codes
        if not result.success:
            result.error = (
                f"Expected one of {config.success_codes}, got {response.status_code}"
            )
    except httpx.TimeoutException:
        result.timed_out = True
        result.error = f"Request timed out after {timeout}s"
    except httpx.ConnectError as e:
        result.error = f"Connection failed: {str(e)[:200]}"
    except httpx.RequestError as e:
        result.error = f"Request error: {str(e)[:200]}"
    finally:
        result.duration_ms = int((time.monotonic() - start) * 1000)

    return result


async def run_probe(
    check_id: str,
    repository: CheckRepository,
    recorder: PingRecorder,
) -> Optional[ProbeResult]:
    """Probe an ``http_request`` check and record the outcome."""
    check = await repository.get(check_id)
    if check is None:
        raise NotFoundError(check_id)
    if check.type != "http_request" or not check.http_config:
        logger.warning(f"Check {check_id} has no HTTP configuration; skipping probe")
        return None

    config = HttpConfig.model_validate(check.http_config)
    logger.info(f"Probing {config.method} {config.url} for check '{check.name}'")
    result = await execute_http_request(config)

    ping_fields = {
        "response_code": result.status_code,
        "method": result.method,
        "request_url": result.request_url,
        "duration_ms": result.duration_ms,
    }
    if result.success:
        await recorder.record_ping(check_id, "success", **ping_fields)
    else:
        await recorder.record_probe_failure(
            check_id,
            status="timeout" if result.timed_out else "failure",
            error=result.error,
            **ping_fields,
        )
        logger.warning(f"Probe failed for check '{check.name}': {result.error}")
    return result
