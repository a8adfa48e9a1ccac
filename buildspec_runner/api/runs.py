"""
POST /api/runs
==============
Runs a local project's buildspec in a container and returns the captured
output once the run is over.

Safety:
    - Disabled by default (requires ENABLE_RUN_ENDPOINT=true)
    - Hard timeout ceiling (RUN_ENDPOINT_MAX_TIMEOUT)
    - Never returns the container environment (it holds credentials)

The run itself is blocking Docker I/O, so it is pushed to a worker
thread; the request waits for it.
"""
import asyncio
import io
import logging
import time
import uuid
from typing import Optional

from docker.errors import DockerException
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from buildspec_runner.core.config import ENABLE_RUN_ENDPOINT, RUN_ENDPOINT_MAX_TIMEOUT, RunnerConfig
from buildspec_runner.core.errors import (
    BuildSpecRunnerError,
    ExecutionTimeoutError,
    SpecFormatError,
)
from buildspec_runner.executor import build_executor
from buildspec_runner.services.source_provider import FolderSourceProvider
from buildspec_runner.utils.log_excerpt import create_log_excerpt

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Runs"])


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class RunRequest(BaseModel):
    project_path: str
    image_id: str
    build_spec_path: Optional[str] = None
    quiet: bool = False
    no_credentials: bool = True
    profile: Optional[str] = None
    region: Optional[str] = None
    timeout_override: Optional[int] = None     # Seconds, capped at RUN_ENDPOINT_MAX_TIMEOUT


class RunResponse(BaseModel):
    run_id: str
    exit_code: int
    status: str            # success / failure
    stdout: str
    stderr: str
    log_excerpt: str
    execution_time_seconds: float


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------
@router.post("/runs", response_model=RunResponse)
async def create_run(request: RunRequest):
    if not ENABLE_RUN_ENDPOINT:
        raise HTTPException(status_code=404, detail="Not found")

    run_id = str(uuid.uuid4())[:12]
    timeout = min(request.timeout_override or RUN_ENDPOINT_MAX_TIMEOUT, RUN_ENDPOINT_MAX_TIMEOUT)
    try:
        config = RunnerConfig.resolve(
            build_spec_path=request.build_spec_path,
            quiet=request.quiet,
            no_credentials=request.no_credentials,
            profile=request.profile,
            region=request.region,
            timeout_seconds=timeout,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    out, err = io.StringIO(), io.StringIO()
    logger.info("[RUN:%s] Starting — project=%s image=%s timeout=%ds",
                run_id, request.project_path, request.image_id, timeout)

    start = time.monotonic()
    try:
        exit_code = await asyncio.wait_for(
            asyncio.to_thread(
                build_executor.run,
                request.image_id,
                FolderSourceProvider(request.project_path),
                config,
                out=out,
                err=err,
            ),
            # Grace period for container create/teardown around the exec deadline
            timeout=timeout + 60,
        )
    except SpecFormatError as e:
        raise HTTPException(status_code=422, detail={"reason": e.reason, "path": e.path})
    except (ExecutionTimeoutError, asyncio.TimeoutError):
        logger.warning("[RUN:%s] Timed out after %.1fs", run_id, time.monotonic() - start)
        raise HTTPException(status_code=504, detail=f"Run exceeded {timeout}s")
    except (BuildSpecRunnerError, DockerException) as e:
        logger.error("[RUN:%s] Run error: %s", run_id, e, exc_info=True)
        raise HTTPException(status_code=502, detail=f"Run error: {e}")

    elapsed = round(time.monotonic() - start, 3)
    logger.info("[RUN:%s] Finished in %.1fs — exit=%d", run_id, elapsed, exit_code)

    stdout, stderr = out.getvalue(), err.getvalue()
    return RunResponse(
        run_id=run_id,
        exit_code=exit_code,
        status="success" if exit_code == 0 else "failure",
        stdout=stdout,
        stderr=stderr,
        log_excerpt=create_log_excerpt(stdout + stderr),
        execution_time_seconds=elapsed,
    )
