"""
Buildspec Models
================
Two layers:

    Document models (pydantic)
        Mirror the YAML schema one-to-one. Unknown keys are forbidden at
        every level and scalar types are strict, so a mapping where a
        string is expected fails here rather than being coerced.
        Every field is Optional: "declared but empty" is a semantic rule
        checked by the parser through ``model_fields_set``.

    BuildSpecification (frozen dataclass)
        The validated, immutable value the rest of the runner consumes.
        Always holds all four phases.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr

from buildspec_runner.core.constants import PHASES


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class EnvSection(_Section):
    variables: Optional[dict[StrictStr, StrictStr]] = None
    parameter_store: Optional[dict[StrictStr, StrictStr]] = Field(default=None, alias="parameter-store")


class PhaseSection(_Section):
    commands: Optional[list[StrictStr]] = None


class PhasesSection(_Section):
    install: Optional[PhaseSection] = None
    pre_build: Optional[PhaseSection] = None
    build: Optional[PhaseSection] = None
    post_build: Optional[PhaseSection] = None


class ArtifactsSection(_Section):
    """Validated for shape only; artifacts are never exported."""
    files: Optional[tuple[StrictStr, ...]] = None
    discard_paths: Optional[StrictBool] = Field(default=None, alias="discard-paths")
    base_directory: Optional[StrictStr] = Field(default=None, alias="base-directory")


class BuildSpecDocument(_Section):
    # Checked semantically so a wrong type reads as "unsupported version".
    version: Any = None
    env: Optional[EnvSection] = None
    phases: Optional[PhasesSection] = None
    artifacts: Optional[ArtifactsSection] = None


def _frozen_mapping(values: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return MappingProxyType(dict(values or {}))


def _empty_phases() -> Mapping[str, tuple[str, ...]]:
    return MappingProxyType({phase: () for phase in PHASES})


@dataclass(frozen=True)
class BuildSpecification:
    """
    Parsed, validated representation of a buildspec file.

    Fields
    ------
    version : float
        Always the supported version (0.2).
    env : Mapping[str, str]
        Literal environment variables, in declared order.
    parameter_store : Mapping[str, str]
        Environment variable name -> parameter-store key. Resolved only
        when the container environment is assembled.
    phases : Mapping[str, tuple[str, ...]]
        All four phases, each an ordered tuple of commands (possibly empty).
    artifacts : ArtifactsSection | None
        Shape-checked artifacts section, never consumed.
    path : str | None
        File the specification was read from.
    """
    version: float
    env: Mapping[str, str] = field(default_factory=lambda: _frozen_mapping(None))
    parameter_store: Mapping[str, str] = field(default_factory=lambda: _frozen_mapping(None))
    phases: Mapping[str, tuple[str, ...]] = field(default_factory=_empty_phases)
    artifacts: Optional[ArtifactsSection] = None
    path: Optional[str] = None

    @classmethod
    def create(cls,
               version: float,
               env: Optional[Mapping[str, str]] = None,
               parameter_store: Optional[Mapping[str, str]] = None,
               phases: Optional[Mapping[str, Any]] = None,
               artifacts: Optional[ArtifactsSection] = None,
               path: Optional[str] = None) -> "BuildSpecification":
        """Freeze plain containers into a specification holding every phase."""
        phases = phases or {}
        unknown = set(phases) - set(PHASES)
        if unknown:
            raise ValueError(f"Unknown phases: {sorted(unknown)}")
        return cls(
            version=version,
            env=_frozen_mapping(env),
            parameter_store=_frozen_mapping(parameter_store),
            phases=MappingProxyType({p: tuple(phases.get(p) or ()) for p in PHASES}),
            artifacts=artifacts,
            path=path,
        )

    def commands(self, phase: str) -> tuple[str, ...]:
        return self.phases[phase]

    @property
    def command_count(self) -> int:
        return sum(len(cmds) for cmds in self.phases.values())
