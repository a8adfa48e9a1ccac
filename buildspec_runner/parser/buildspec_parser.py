"""
Buildspec Parser
================
Reads a buildspec YAML file and returns an immutable BuildSpecification.

Validation runs in two passes and both raise SpecFormatError:

    1. Structural — pydantic document models reject unknown keys and
       wrong types anywhere in the document.
    2. Semantic — version check, required sections, and the
       "declared but empty" rule.

Presence vs absence:
    A section that is absent defaults to empty. A section that is present
    with nothing under it is an error. ``env`` may be omitted entirely but
    ``env:`` followed by nothing is rejected, and likewise for phases,
    artifacts and their children.
"""
import logging
import os
from typing import Optional

import yaml
from pydantic import ValidationError

from buildspec_runner.core.config import DEFAULT_BUILD_SPEC_PATH
from buildspec_runner.core.constants import PHASES, SUPPORTED_VERSION
from buildspec_runner.core.errors import SpecFormatError
from buildspec_runner.models.buildspec import (
    BuildSpecDocument,
    BuildSpecification,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
def _load_document(path: str) -> object:
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise SpecFormatError(f"Unable to read buildspec: {e.strerror or e}", path) from e

    try:
        return yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecFormatError(f"Invalid YAML: {e}", path) from e


def _format_validation_errors(exc: ValidationError) -> str:
    details = []
    for err in exc.errors():
        location = " => ".join(str(part) for part in err["loc"]) or "<document>"
        details.append(f"{location}: {err['msg']}")
    return "; ".join(details)


# ---------------------------------------------------------------------------
# Semantic checks
# ---------------------------------------------------------------------------
def _check_version(document: BuildSpecDocument, path: str) -> None:
    if "version" not in document.model_fields_set or document.version is None:
        raise SpecFormatError(f"Missing version. This only supports {SUPPORTED_VERSION}", path)

    version = document.version
    # bool is an int subclass; "version: true" must not slip through
    if isinstance(version, bool) or not isinstance(version, float) or version != SUPPORTED_VERSION:
        raise SpecFormatError(
            f"Unsupported version: {version}. This only supports {SUPPORTED_VERSION}", path
        )


def _check_env(document: BuildSpecDocument, path: str) -> None:
    if "env" not in document.model_fields_set:
        return
    env = document.env
    if env is None or not env.model_fields_set:
        raise SpecFormatError('Mapping "env" requires mapping "variables"', path)
    if "variables" in env.model_fields_set and not env.variables:
        raise SpecFormatError('Mapping "env => variables" must not be empty', path)
    if "parameter_store" in env.model_fields_set and not env.parameter_store:
        raise SpecFormatError('Mapping "env => parameter-store" must not be empty', path)


def _check_phases(document: BuildSpecDocument, path: str) -> None:
    phases = document.phases
    if "phases" not in document.model_fields_set or phases is None:
        raise SpecFormatError('Missing required mapping "phases"', path)
    if not phases.model_fields_set:
        raise SpecFormatError('Mapping "phases" requires at least one phase', path)

    for phase in PHASES:
        if phase not in phases.model_fields_set:
            continue
        section = getattr(phases, phase)
        if section is None or "commands" not in section.model_fields_set:
            raise SpecFormatError(f'Mapping "phases => {phase}" requires mapping "commands"', path)
        if not section.commands:
            raise SpecFormatError(f'Sequence "phases => {phase} => commands" must not be empty', path)


def _check_artifacts(document: BuildSpecDocument, path: str) -> None:
    if "artifacts" not in document.model_fields_set:
        return
    artifacts = document.artifacts
    if artifacts is None or "files" not in artifacts.model_fields_set:
        raise SpecFormatError('Mapping "artifacts" requires mapping "files"', path)
    if not artifacts.files:
        raise SpecFormatError('Sequence "artifacts => files" must not be empty', path)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def parse(path: str) -> BuildSpecification:
    """
    Parse and validate the buildspec file at ``path``.

    Raises
    ------
    SpecFormatError
        On unreadable files, invalid YAML, schema violations, an
        unsupported or missing version, a missing phases section, or
        any section that is declared but empty.
    """
    raw = _load_document(path)
    if raw is None:
        raise SpecFormatError("Buildspec document is empty", path)

    try:
        document = BuildSpecDocument.model_validate(raw)
    except ValidationError as e:
        raise SpecFormatError(
            f"Encountered errors while validating buildspec: {_format_validation_errors(e)}",
            path,
        ) from e

    _check_version(document, path)
    _check_phases(document, path)
    _check_env(document, path)
    _check_artifacts(document, path)

    env = document.env
    phases = document.phases
    spec = BuildSpecification.create(
        version=document.version,
        env=env.variables if env else None,
        parameter_store=env.parameter_store if env else None,
        phases={
            phase: getattr(phases, phase).commands
            for phase in PHASES
            if getattr(phases, phase) is not None
        },
        artifacts=document.artifacts,
        path=path,
    )

    logger.debug(
        "Parsed buildspec %s | env=%d | parameters=%d | commands=%d",
        path, len(spec.env), len(spec.parameter_store), spec.command_count,
    )
    return spec


def resolve_build_spec_path(project_path: str, build_spec_path: Optional[str] = None) -> str:
    """
    Locate the buildspec file for a project.

    Absolute paths are used as-is; relative ones (including ``../``
    forms) are joined to the project root.
    """
    build_spec_path = build_spec_path or DEFAULT_BUILD_SPEC_PATH
    if os.path.isabs(build_spec_path):
        return build_spec_path
    return os.path.join(project_path, build_spec_path)


def parse_project(source_provider, build_spec_path: Optional[str] = None) -> BuildSpecification:
    """Parse the buildspec belonging to the project a source provider points at."""
    return parse(resolve_build_spec_path(source_provider.path, build_spec_path))
