"""
Image Service
=============
Builds the stock CodeBuild images locally.

Philosophy:
    - Clone the public aws-codebuild-docker-images repo ONCE into
      IMAGE_REPO_PATH, pull on every later use.
    - Build the requested Dockerfile directory with the Docker SDK.
    - Return the image id; the runner never needs more than that.
"""
import logging
import os
import subprocess

import docker

from buildspec_runner.core.config import (
    DEFAULT_DOCKERFILE_PATH,
    IMAGE_REPO_PATH,
    IMAGE_REPO_URL,
)

logger = logging.getLogger(__name__)

REPO_NAME = IMAGE_REPO_URL.rstrip("/").split("/")[-1]


def _git(args: list[str], cwd: str = None) -> None:
    try:
        subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)
    except subprocess.CalledProcessError as e:
        logger.error("git %s failed: %s", " ".join(args), e.stderr)
        raise RuntimeError(f"git {args[0]} failed: {e.stderr}") from e


def load_image_repo(repo_path: str = IMAGE_REPO_PATH) -> str:
    """
    Clone the CodeBuild images repository, or pull it if already cloned.

    Returns
    -------
    str
        Absolute path to the local clone.
    """
    dest_path = os.path.abspath(os.path.join(repo_path, REPO_NAME))

    if os.path.isdir(os.path.join(dest_path, ".git")):
        logger.info("Updating %s at %s", REPO_NAME, dest_path)
        _git(["pull", "--ff-only"], cwd=dest_path)
        return dest_path

    os.makedirs(repo_path, exist_ok=True)
    logger.info("Cloning %s into %s", IMAGE_REPO_URL, dest_path)
    _git(["clone", "--depth", "1", IMAGE_REPO_URL, dest_path])
    return dest_path


def build_image(client=None,
                aws_dockerfile_path: str = DEFAULT_DOCKERFILE_PATH,
                repo_path: str = IMAGE_REPO_PATH) -> str:
    """
    Build a CodeBuild image from one Dockerfile directory of the images repo.

    Parameters
    ----------
    client : docker.DockerClient | None
        Docker client; ``docker.from_env()`` when omitted.
    aws_dockerfile_path : str
        Directory inside the repo holding the Dockerfile,
        e.g. "ubuntu/standard/7.0/".
    repo_path : str
        Where the repo is cloned.

    Returns
    -------
    str
        The built image id.
    """
    client = client or docker.from_env()
    repo_dir = load_image_repo(repo_path)
    docker_dir = os.path.join(repo_dir, aws_dockerfile_path)
    if not os.path.isdir(docker_dir):
        raise FileNotFoundError(f"No Dockerfile directory '{aws_dockerfile_path}' in {repo_dir}")

    logger.info("Building image from %s (this can take a while)", docker_dir)
    image, _logs = client.images.build(path=docker_dir, rm=True)
    logger.info("Built image %s", image.short_id)
    return image.id


def get_image(client, image_id: str) -> str:
    """Resolve a user supplied image id or tag to a full image id."""
    return client.images.get(image_id).id
