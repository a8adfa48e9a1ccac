"""
Phase State Machine
===================
The phase/failure semantics of the compiled phase program, expressed as
an explicit state object that drives a plain ``run_command`` callable.

States:
    Idle -> RunningPhase(name) -> ... -> Done(code)
    RunningPhase(name) -> PhaseFailed(name, code)   install / pre_build / post_build
    RunningPhase("build") -> BuildDeferred(code)    build failure, post_build still runs

Used by the CLI's dry-run mode and by the test-suite as the reference
model for compiled programs. Container runs always go through the
compiled program so that every command shares one shell session.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from buildspec_runner.core.constants import (
    DEBUG_HEADER,
    DEFERRED_FAILURE_PHASE,
    FINAL_PHASE,
    PHASES,
)
from buildspec_runner.models.buildspec import BuildSpecification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class RunningPhase:
    name: str


@dataclass(frozen=True)
class PhaseFailed:
    name: str
    code: int


@dataclass(frozen=True)
class BuildDeferred:
    code: int


@dataclass(frozen=True)
class Done:
    code: int


PhaseState = Union[Idle, RunningPhase, PhaseFailed, BuildDeferred, Done]


class PhaseStateMachine:
    """
    Runs the phases of one BuildSpecification.

    Parameters
    ----------
    spec : BuildSpecification
        The commands to run.
    run_command : Callable[[str], int]
        Executes one command and returns its exit status.
    notify : Callable[[str], None] | None
        Receives debug notices (same wording as the compiled program).
    quiet : bool
        Suppress notices. Never changes which commands run.
    """

    def __init__(self,
                 spec: BuildSpecification,
                 run_command: Callable[[str], int],
                 notify: Optional[Callable[[str], None]] = None,
                 quiet: bool = False):
        self.spec = spec
        self.run_command = run_command
        self.notify = notify
        self.quiet = quiet
        self.state: PhaseState = Idle()
        self.history: list[PhaseState] = [self.state]

    def _transition(self, state: PhaseState) -> None:
        logger.debug("Phase state %s -> %s", self.state, state)
        self.state = state
        self.history.append(state)

    def _notice(self, message: str) -> None:
        if not self.quiet and self.notify is not None:
            self.notify(f"{DEBUG_HEADER} {message}")

    def _run_phase(self, phase: str) -> int:
        self._transition(RunningPhase(phase))
        self._notice(f'Running phase "{phase}"')

        exit_code = 0
        for command in self.spec.commands(phase):
            self._notice(f'Running command "{command}"')
            exit_code = self.run_command(command)
            if exit_code != 0:
                self._notice(f'Command failed "{command}"')
                break

        self._notice(f'Completed phase "{phase}", successful: {"true" if exit_code == 0 else "false"}')
        return exit_code

    def _finish(self, code: int) -> int:
        self._transition(Done(code))
        return code

    def run(self) -> int:
        """Run all phases and return the final exit status."""
        if not isinstance(self.state, Idle):
            raise RuntimeError(f"State machine already used (state={self.state})")

        build_exit = 0
        for phase in PHASES:
            exit_code = self._run_phase(phase)

            if phase == DEFERRED_FAILURE_PHASE:
                if exit_code != 0:
                    build_exit = exit_code
                    self._transition(BuildDeferred(exit_code))
            elif phase == FINAL_PHASE:
                if exit_code != 0:
                    self._transition(PhaseFailed(phase, exit_code))
                return self._finish(build_exit if build_exit != 0 else exit_code)
            elif exit_code != 0:
                self._transition(PhaseFailed(phase, exit_code))
                return self._finish(exit_code)

        # PHASES always ends with FINAL_PHASE
        raise AssertionError("unreachable")
