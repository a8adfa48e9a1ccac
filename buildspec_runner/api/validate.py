"""
POST /api/buildspec/validate
Parses a project's buildspec and returns what the runner would execute.
Never touches Docker or AWS.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from buildspec_runner.core.errors import SpecFormatError
from buildspec_runner.parser.buildspec_parser import parse, resolve_build_spec_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/buildspec", tags=["Buildspec"])


class ValidateRequest(BaseModel):
    project_path: str
    build_spec_path: Optional[str] = None


class ValidateResponse(BaseModel):
    path: str
    version: float
    env_variables: list[str]
    parameter_store: dict[str, str]
    phases: dict[str, list[str]]
    has_artifacts: bool


@router.post("/validate", response_model=ValidateResponse)
async def validate_buildspec(request: ValidateRequest):
    path = resolve_build_spec_path(request.project_path, request.build_spec_path)
    try:
        spec = parse(path)
    except SpecFormatError as e:
        logger.info("Rejected buildspec %s: %s", e.path, e.reason)
        raise HTTPException(status_code=422, detail={"reason": e.reason, "path": e.path})

    return ValidateResponse(
        path=path,
        version=spec.version,
        # Values may be secrets; names only
        env_variables=list(spec.env),
        parameter_store=dict(spec.parameter_store),
        phases={phase: list(cmds) for phase, cmds in spec.phases.items()},
        has_artifacts=spec.artifacts is not None,
    )
