"""
Execution Driver
================
Runs a compiled PhaseProgram as ONE exec call in an already started
container and streams its output back.

STREAMING:
    The exec is started with ``stream=True, demux=True``; every chunk is
    decoded and written to its sink as soon as it arrives, so stdout and
    stderr interleave the way the running program produced them.
    Nothing is buffered and replayed.

TIMEOUT:
    A fixed deadline bounds the call. Running past it, or the Docker
    client's socket read timing out, raises ExecutionTimeoutError.
    There is no retry.

EXIT STATUS:
    The engine can still report the exec as running right after its
    output stream closes. exec_inspect is polled until it is finished,
    within the same deadline; a finished exec without an integer exit
    code is an error, never a success.
"""
import codecs
import logging
import socket
import sys
import time
from typing import Optional, TextIO

from requests.exceptions import ReadTimeout

from buildspec_runner.core.config import DEFAULT_TIMEOUT_SECONDS
from buildspec_runner.core.errors import BuildSpecRunnerError, ExecutionTimeoutError
from buildspec_runner.executor.phase_program import PhaseProgram

logger = logging.getLogger(__name__)

_EXIT_POLL_SECONDS = 0.1


class _StreamWriter:
    """Incrementally decodes one byte stream into a text sink."""

    def __init__(self, sink: TextIO):
        self.sink = sink
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.bytes_written = 0

    def write(self, chunk: Optional[bytes]) -> None:
        if not chunk:
            return
        self.bytes_written += len(chunk)
        text = self._decoder.decode(chunk)
        if text:
            self.sink.write(text)
            self.sink.flush()

    def close(self) -> None:
        tail = self._decoder.decode(b"", final=True)
        if tail:
            self.sink.write(tail)
        self.sink.flush()


def _wait_for_exit_code(api, exec_id: str, deadline: float, timeout_seconds: float) -> int:
    while True:
        info = api.exec_inspect(exec_id)
        if not info.get("Running"):
            exit_code = info.get("ExitCode")
            # bool is an int subclass
            if not isinstance(exit_code, int) or isinstance(exit_code, bool):
                raise BuildSpecRunnerError(
                    f"Exec {exec_id[:12]} finished without an exit code (got {exit_code!r})"
                )
            return exit_code
        if time.monotonic() > deadline:
            raise ExecutionTimeoutError(timeout_seconds)
        logger.debug("Exec %s still running after output closed; polling", exec_id[:12])
        time.sleep(_EXIT_POLL_SECONDS)


def execute(container,
            program: PhaseProgram,
            out: Optional[TextIO] = None,
            err: Optional[TextIO] = None,
            timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS) -> int:
    """
    Execute ``program`` inside ``container``.

    Parameters
    ----------
    container : docker.models.containers.Container
        A started container.
    program : PhaseProgram
        Compiled phase program.
    out, err : TextIO | None
        Sinks for the program's stdout / stderr. Default to this
        process's own standard streams.
    timeout_seconds : float
        Deadline for the whole call.

    Returns
    -------
    int
        The exit status the container engine reports for the exec.
    """
    stdout = _StreamWriter(out or sys.stdout)
    stderr = _StreamWriter(err or sys.stderr)
    api = container.client.api
    deadline = time.monotonic() + timeout_seconds

    exec_id = api.exec_create(container.id, program.argv, stdout=True, stderr=True, tty=False)["Id"]
    logger.info("Exec %s started in container %s | timeout=%ss", exec_id[:12], container.short_id, timeout_seconds)

    try:
        stream = api.exec_start(exec_id, stream=True, demux=True)
        try:
            for out_chunk, err_chunk in stream:
                stdout.write(out_chunk)
                stderr.write(err_chunk)
                if time.monotonic() > deadline:
                    raise ExecutionTimeoutError(timeout_seconds)
        finally:
            stream.close()
    except (socket.timeout, ReadTimeout) as e:
        raise ExecutionTimeoutError(timeout_seconds) from e
    finally:
        stdout.close()
        stderr.close()

    exit_code = _wait_for_exit_code(api, exec_id, deadline, timeout_seconds)
    logger.info(
        "Exec %s finished | exit=%s | stdout=%dB | stderr=%dB",
        exec_id[:12], exit_code, stdout.bytes_written, stderr.bytes_written,
    )
    return exit_code
