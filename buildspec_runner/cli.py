"""
Command Line Interface
======================
    buildspec-runner -p PATH [options]

Runs the buildspec of the project at PATH inside a local container and
exits with the status the hosted build service would report.

Exit codes:
    <n>  the phase program's final status (0 on success)
    2    invalid buildspec or invalid arguments
    1    credential, parameter, timeout or Docker failure
"""
import argparse
import logging
import sys
from typing import Optional, TextIO

from docker.errors import DockerException

from buildspec_runner.core.config import DEFAULT_BUILD_SPEC_PATH, DEFAULT_DOCKERFILE_PATH, RunnerConfig
from buildspec_runner.core.errors import BuildSpecRunnerError, SpecFormatError
from buildspec_runner.executor import build_executor
from buildspec_runner.executor.phase_machine import PhaseStateMachine
from buildspec_runner.parser.buildspec_parser import parse_project
from buildspec_runner.services.image_service import build_image, get_image
from buildspec_runner.services.source_provider import FolderSourceProvider
from buildspec_runner.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="buildspec-runner",
        description="Run a CodeBuild buildspec locally in a Docker container.",
    )
    parser.add_argument("-p", "--path", required=True,
                        help="Path to the project to run.")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Silence the runner's debug messages.")
    parser.add_argument("--build_spec_path", default=None,
                        help=f"Buildspec path, relative to the project or absolute (default: {DEFAULT_BUILD_SPEC_PATH}).")

    image_group = parser.add_mutually_exclusive_group()
    image_group.add_argument("--image_id", default=None,
                             help="Id or tag of an existing Docker image to run on.")
    image_group.add_argument("--aws_dockerfile_path", default=None,
                             help=f"Dockerfile directory in aws-codebuild-docker-images (default: {DEFAULT_DOCKERFILE_PATH}).")

    credential_group = parser.add_mutually_exclusive_group()
    credential_group.add_argument("--profile", default=None,
                                  help="AWS profile used for session credentials and parameter store.")
    credential_group.add_argument("--no_credentials", "--no_creds", action="store_true",
                                  help="Do not pass AWS credentials or parameter-store values to the container.")

    parser.add_argument("--region", default=None,
                        help="AWS region exposed to the container.")
    parser.add_argument("--timeout", type=int, default=None,
                        help="Seconds before the build is aborted.")
    parser.add_argument("--dry-run", action="store_true",
                        help="Validate the buildspec and print the commands without running a container.")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-dir", default=None,
                        help="Also write runner logs to a dated file in this directory.")
    return parser


def dry_run(source_provider, config: RunnerConfig, out: TextIO, err: TextIO) -> int:
    """Walk the phases without executing anything; every command 'succeeds'."""
    spec = parse_project(source_provider, config.build_spec_path)

    def _echo(command: str) -> int:
        print(f"+ {command}", file=out)
        return 0

    machine = PhaseStateMachine(
        spec, _echo,
        notify=lambda message: print(message, file=err),
        quiet=config.quiet,
    )
    return machine.run()


def resolve_image(client, image_id: Optional[str], aws_dockerfile_path: Optional[str]) -> str:
    if image_id:
        return get_image(client, image_id)
    return build_image(client, aws_dockerfile_path=aws_dockerfile_path or DEFAULT_DOCKERFILE_PATH)


def run(args: argparse.Namespace, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    config = RunnerConfig.resolve(
        build_spec_path=args.build_spec_path,
        quiet=args.quiet,
        no_credentials=args.no_credentials,
        profile=args.profile,
        region=args.region,
        timeout_seconds=args.timeout,
    )
    source_provider = FolderSourceProvider(args.path)

    if args.dry_run:
        return dry_run(source_provider, config, out, err)

    client = build_executor.make_client(config)
    image_id = resolve_image(client, args.image_id, args.aws_dockerfile_path)
    return build_executor.run(image_id, source_provider, config, out=out, err=err, client=client)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=getattr(logging, args.log_level), log_dir=args.log_dir)

    try:
        return run(args)
    except SpecFormatError as e:
        print(f"Invalid buildspec: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"Invalid arguments: {e}", file=sys.stderr)
        return 2
    except BuildSpecRunnerError as e:
        print(f"Run failed: {e}", file=sys.stderr)
        return 1
    except DockerException as e:
        logger.debug("Docker failure", exc_info=True)
        print(f"Docker error: {e}", file=sys.stderr)
        return 1
    except (RuntimeError, OSError) as e:
        print(f"Image setup failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
