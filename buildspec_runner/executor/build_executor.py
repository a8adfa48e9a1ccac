"""
Build Executor
==============
Runs a buildspec project inside an ephemeral Docker container and
returns the exit status of its phases.

Lifecycle of one run:
    1. Locate and parse the buildspec
    2. Assemble the container environment (credentials, parameters, region)
    3. Create + start a container with the project mounted read-only
    4. Compile the phases into one program and execute it
    5. Stop + remove the container, no matter what happened in 1-4

OWNERSHIP:
    Each run owns exactly one container; two runs never share one.
    Release failures are logged and never replace the run's own
    result or exception.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, TextIO

import docker

from buildspec_runner.core.config import RunnerConfig
from buildspec_runner.core.constants import (
    CONTAINER_SHELL,
    REMOTE_SOURCE_VOLUME_PATH_RO,
)
from buildspec_runner.executor.driver import execute
from buildspec_runner.executor.phase_program import compile_phase_program
from buildspec_runner.parser.buildspec_parser import parse_project
from buildspec_runner.services.environment import assemble_environment
from buildspec_runner.services.image_service import build_image
from buildspec_runner.services.source_provider import FolderSourceProvider

logger = logging.getLogger(__name__)


def make_client(config: RunnerConfig):
    """Docker client whose read timeout matches the run's exec deadline."""
    return docker.from_env(timeout=config.timeout_seconds)


@contextmanager
def build_container(client, image_id: str, source_provider, env: list[str]) -> Iterator:
    """
    Acquire a build container and guarantee its release.

    The container runs an idle interactive shell so it stays up between
    create and exec, and sees the project read-only at
    REMOTE_SOURCE_VOLUME_PATH_RO.
    """
    container = client.containers.create(
        image=image_id,
        command=CONTAINER_SHELL,
        tty=True,
        environment=env,
        volumes={source_provider.path: {"bind": REMOTE_SOURCE_VOLUME_PATH_RO, "mode": "ro"}},
        labels={"project": "buildspec-runner", "role": "build"},
    )
    logger.info("Created container %s from image %s", container.short_id, image_id[:19])
    try:
        container.start()
        yield container
    finally:
        _release(container)


def _release(container) -> None:
    try:
        container.stop()
    except Exception:
        logger.warning("Failed to stop container %s", container.short_id, exc_info=True)
    try:
        container.remove(force=True)
        logger.info("Container %s destroyed", container.short_id)
    except Exception:
        logger.warning("Failed to remove container %s", container.short_id, exc_info=True)


class BuildSpecRunner:
    """
    One run of one project on one image.

    Parameters
    ----------
    image_id : str
        Image the build container is created from.
    source_provider : FolderSourceProvider
        Yields the project root on the host.
    config : RunnerConfig
        Resolved run options.
    out, err : TextIO | None
        Sinks for the build's stdout / stderr (process streams by default).
    client : docker.DockerClient | None
        Injected Docker client; created from the environment when omitted.
    credential_provider, parameter_store
        Injected AWS collaborators; see services.environment.
    """

    def __init__(self,
                 image_id: str,
                 source_provider,
                 config: Optional[RunnerConfig] = None,
                 out: Optional[TextIO] = None,
                 err: Optional[TextIO] = None,
                 client=None,
                 credential_provider=None,
                 parameter_store=None):
        self.image_id = image_id
        self.source_provider = source_provider
        self.config = config or RunnerConfig()
        self.out = out
        self.err = err
        self.client = client
        self.credential_provider = credential_provider
        self.parameter_store = parameter_store

    def execute(self) -> int:
        """Run the project and return the final exit status of its phases."""
        spec = parse_project(self.source_provider, self.config.build_spec_path)
        env = assemble_environment(
            spec,
            credential_provider=self.credential_provider,
            parameter_store=self.parameter_store,
            options=self.config,
        )
        program = compile_phase_program(spec, quiet=self.config.quiet)
        client = self.client or make_client(self.config)

        logger.info(
            "Running %s on image %s | commands=%d | quiet=%s",
            spec.path, self.image_id[:19], spec.command_count, self.config.quiet,
        )
        with build_container(client, self.image_id, self.source_provider, env) as container:
            exit_code = execute(
                container, program,
                out=self.out, err=self.err,
                timeout_seconds=self.config.timeout_seconds,
            )

        logger.info("Run complete | exit=%d", exit_code)
        return exit_code


def run(image_id: str, source_provider, config: Optional[RunnerConfig] = None, **kwargs) -> int:
    """Run a project on the given image. See BuildSpecRunner for kwargs."""
    return BuildSpecRunner(image_id, source_provider, config, **kwargs).execute()


def run_default(path: str, config: Optional[RunnerConfig] = None, **kwargs) -> int:
    """Run the project at ``path`` on the default CodeBuild image."""
    config = config or RunnerConfig()
    client = kwargs.pop("client", None) or make_client(config)
    image_id = build_image(client)
    return run(image_id, FolderSourceProvider(path), config, client=client, **kwargs)
