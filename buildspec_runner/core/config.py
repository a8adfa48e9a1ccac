"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    BUILDSPEC_RUNNER_TIMEOUT          — Max seconds for the single exec call (default: 2000)
    BUILDSPEC_RUNNER_BUILD_SPEC_PATH  — Default buildspec location (default: buildspec.yml)
    BUILDSPEC_RUNNER_IMAGE_REPO_PATH  — Where the CodeBuild images repo is cloned
    BUILDSPEC_RUNNER_DOCKERFILE_PATH  — Default Dockerfile directory inside that repo
    BUILDSPEC_RUNNER_REGION           — Region handed to the container (optional)
    BUILDSPEC_RUNNER_PROFILE          — AWS profile used for STS/SSM (optional)
    ENABLE_RUN_ENDPOINT               — Enable POST /api/runs (default: false)
    RUN_ENDPOINT_MAX_TIMEOUT          — Hard ceiling for API runs in seconds (default: 2400)

Precedence:
    RunnerConfig.resolve() is called once at the start of a run.
    Explicit arguments win over environment variables, which win over
    the built-in defaults below. Nothing is re-read lazily mid-run.

Execution Timeout:
    DEFAULT_TIMEOUT_SECONDS bounds the one blocking exec call that runs
    the compiled phase program. It also becomes the Docker client read
    timeout, so a silent build longer than this is treated as a timeout.
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_TIMEOUT_SECONDS = int(os.getenv("BUILDSPEC_RUNNER_TIMEOUT", 2000))
DEFAULT_BUILD_SPEC_PATH = os.getenv("BUILDSPEC_RUNNER_BUILD_SPEC_PATH", "buildspec.yml")

# CodeBuild image sources
IMAGE_REPO_URL = "https://github.com/aws/aws-codebuild-docker-images"
IMAGE_REPO_PATH = os.getenv("BUILDSPEC_RUNNER_IMAGE_REPO_PATH", "/tmp/build_spec_runner/")
DEFAULT_DOCKERFILE_PATH = os.getenv("BUILDSPEC_RUNNER_DOCKERFILE_PATH", "ubuntu/standard/7.0/")

# HTTP API
ENABLE_RUN_ENDPOINT = os.getenv("ENABLE_RUN_ENDPOINT", "false").lower() == "true"
RUN_ENDPOINT_MAX_TIMEOUT = int(os.getenv("RUN_ENDPOINT_MAX_TIMEOUT", 2400))


@dataclass(frozen=True)
class RunnerConfig:
    """
    Options for a single run, resolved once before anything executes.

    Fields
    ------
    build_spec_path : str
        Buildspec location, relative to the project root or absolute.
    quiet : bool
        Drop the runner's debug notices from the program output.
    no_credentials : bool
        Do not fetch session credentials or parameter-store values.
    profile : str | None
        Named AWS profile for STS and SSM.
    region : str | None
        Region exported to the container. None falls back to the
        session's default region at environment-assembly time.
    timeout_seconds : int
        Bound on the single exec call.
    """
    build_spec_path: str = DEFAULT_BUILD_SPEC_PATH
    quiet: bool = False
    no_credentials: bool = False
    profile: Optional[str] = None
    region: Optional[str] = None
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        if self.profile and self.no_credentials:
            raise ValueError("Cannot specify both profile and no_credentials")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {self.timeout_seconds}")

    @classmethod
    def resolve(cls,
                build_spec_path: Optional[str] = None,
                quiet: bool = False,
                no_credentials: bool = False,
                profile: Optional[str] = None,
                region: Optional[str] = None,
                timeout_seconds: Optional[int] = None) -> "RunnerConfig":
        """Build a config: explicit value > environment variable > default."""
        if not no_credentials:
            profile = profile or os.getenv("BUILDSPEC_RUNNER_PROFILE") or None
        return cls(
            build_spec_path=build_spec_path or DEFAULT_BUILD_SPEC_PATH,
            quiet=quiet,
            no_credentials=no_credentials,
            profile=profile,
            region=region or os.getenv("BUILDSPEC_RUNNER_REGION") or None,
            timeout_seconds=timeout_seconds or DEFAULT_TIMEOUT_SECONDS,
        )
