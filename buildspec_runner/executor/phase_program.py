"""
Phase Program Compiler
======================
Compiles a BuildSpecification into ONE bash program that runs every
phase inside a single shell session, so ``cd``, exported variables and
other shell state carry over from command to command exactly as they do
on the hosted build service.

BOOKKEEPING VARIABLES:
    DO_NEXT          0 = keep running commands in the current phase,
                     non-zero = a command already failed, skip the rest
    EXIT_CODE        exit status attributed to the current phase
    BUILD_EXIT_CODE  status captured from the ``build`` phase

PHASE POLICY:
    install, pre_build  non-zero EXIT_CODE ends the program immediately
    build               non-zero EXIT_CODE is parked in BUILD_EXIT_CODE,
                        then EXIT_CODE and DO_NEXT reset so post_build runs
    post_build          exit BUILD_EXIT_CODE if non-zero, else EXIT_CODE

Quiet mode removes debug notices only; control flow is identical.
Commands skipped after a failure are never announced.

User commands are emitted verbatim, each on its own line, so trailing
comments and multi-line YAML block scalars cannot swallow the
bookkeeping that follows them. Notice text is always shell-quoted.
"""
import shlex
from dataclasses import dataclass
from typing import Optional

from buildspec_runner.core.constants import (
    BUILD_EXIT_CODE,
    DEBUG_HEADER,
    DEFERRED_FAILURE_PHASE,
    DO_NEXT,
    EXIT_CODE,
    FINAL_PHASE,
    PHASES,
    REMOTE_SOURCE_VOLUME_PATH,
    REMOTE_SOURCE_VOLUME_PATH_RO,
)
from buildspec_runner.models.buildspec import BuildSpecification

_NOOP = ":"


@dataclass(frozen=True)
class PhaseProgram:
    """A compiled, single-use phase program."""
    script: str
    quiet: bool = False

    @property
    def argv(self) -> list[str]:
        return ["bash", "-c", self.script]


# ---------------------------------------------------------------------------
# Shell fragments
# ---------------------------------------------------------------------------
def _if_zero(variable: str, zero: Optional[str], not_zero: Optional[str]) -> str:
    """``if $variable == 0 then zero else not_zero``; None branches become no-ops."""
    return (
        f'if [ "0" -eq "${variable}" ]; then\n'
        f"{zero or _NOOP}\n"
        f"else\n"
        f"{not_zero or _NOOP}\n"
        f"fi"
    )


def _debug(message: str, quiet: bool) -> str:
    if quiet:
        return _NOOP
    return f">&2 echo {shlex.quote(f'{DEBUG_HEADER} {message}')}"


def _setup_commands(source_dir: str, work_dir: str) -> list[str]:
    return [
        f"cp -r {shlex.quote(source_dir)} {shlex.quote(work_dir)}",
        f"cd {shlex.quote(work_dir)}",
        f'{DO_NEXT}="0"',
        f'{EXIT_CODE}="0"',
        f'{BUILD_EXIT_CODE}="0"',
    ]


def _command_block(command: str, quiet: bool) -> list[str]:
    run = _if_zero(DO_NEXT, "\n".join([
        _debug(f'Running command "{command}"', quiet),
        command,
        f'{EXIT_CODE}="$?"',
    ]), None)
    mark_failed = _if_zero(
        DO_NEXT,
        _if_zero(EXIT_CODE, None, "\n".join([
            f'{DO_NEXT}="${EXIT_CODE}"',
            _debug(f'Command failed "{command}"', quiet),
        ])),
        None,
    )
    return [run, mark_failed]


def _phase_commands(spec: BuildSpecification, phase: str, quiet: bool) -> list[str]:
    lines = [_debug(f'Running phase "{phase}"', quiet)]
    for command in spec.commands(phase):
        lines.extend(_command_block(command, quiet))

    lines.append(_if_zero(
        EXIT_CODE,
        _debug(f'Completed phase "{phase}", successful: true', quiet),
        _debug(f'Completed phase "{phase}", successful: false', quiet),
    ))

    if phase == DEFERRED_FAILURE_PHASE:
        lines.append(_if_zero(
            EXIT_CODE, None,
            f'{BUILD_EXIT_CODE}="${EXIT_CODE}"\n{EXIT_CODE}="0"\n{DO_NEXT}="0"',
        ))
    elif phase == FINAL_PHASE:
        lines.append(_if_zero(BUILD_EXIT_CODE, None, f'exit "${BUILD_EXIT_CODE}"'))
        lines.append(f'exit "${EXIT_CODE}"')
    else:
        lines.append(_if_zero(EXIT_CODE, None, f'exit "${EXIT_CODE}"'))
    return lines


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def compile_phase_program(spec: BuildSpecification,
                          quiet: bool = False,
                          source_dir: str = REMOTE_SOURCE_VOLUME_PATH_RO,
                          work_dir: str = REMOTE_SOURCE_VOLUME_PATH) -> PhaseProgram:
    """
    Compile ``spec`` into a phase program.

    Parameters
    ----------
    spec : BuildSpecification
        Parsed buildspec; all four phases are emitted even when empty.
    quiet : bool
        Omit the runner's debug notices.
    source_dir : str
        Read-only project copy inside the container.
    work_dir : str
        Writable directory the program copies the project into and runs from.
    """
    lines = _setup_commands(source_dir, work_dir)
    for phase in PHASES:
        lines.extend(_phase_commands(spec, phase, quiet))
    return PhaseProgram(script="\n".join(lines) + "\n", quiet=quiet)
