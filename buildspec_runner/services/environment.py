"""
Environment Assembler
=====================
Turns a BuildSpecification into the flat ``NAME=value`` list handed to
the build container.

Order of assignments:
    1. Literal ``env.variables`` in declared order
    2. AWS session credentials (skipped with no_credentials)
    3. Resolved ``env.parameter-store`` values (skipped with no_credentials)
    4. AWS_DEFAULT_REGION / AWS_REGION

FAIL-FAST CONTRACT:
    Every remote lookup is attempted once. Any failure raises and no
    partial environment is returned. Parameter-store access sits behind
    the same trust boundary as credentials, so with no_credentials the
    parameter store is never contacted.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from buildspec_runner.core.config import RunnerConfig
from buildspec_runner.core.errors import CredentialError, ParameterResolutionError
from buildspec_runner.models.buildspec import BuildSpecification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionCredentials:
    """Short-lived credentials as returned by STS GetSessionToken."""
    access_key_id: str
    secret_access_key: str
    session_token: str

    def __repr__(self) -> str:
        return f"SessionCredentials(access_key_id={self.access_key_id!r}, ...)"


# ---------------------------------------------------------------------------
# AWS collaborators
# ---------------------------------------------------------------------------
class StsCredentialProvider:
    """Fetches session credentials through STS, optionally for a named profile."""

    def __init__(self, profile: Optional[str] = None, session: Optional[boto3.session.Session] = None):
        self.profile = profile
        self._session = session

    def _get_session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(profile_name=self.profile)
        return self._session

    def get_session_credentials(self) -> SessionCredentials:
        try:
            response = self._get_session().client("sts").get_session_token()
        except (BotoCoreError, ClientError) as e:
            raise CredentialError(f"Unable to obtain session credentials: {e}") from e

        creds = response["Credentials"]
        return SessionCredentials(
            access_key_id=creds["AccessKeyId"],
            secret_access_key=creds["SecretAccessKey"],
            session_token=creds["SessionToken"],
        )


class SsmParameterStore:
    """Resolves (and decrypts) SSM parameters using previously obtained session credentials."""

    def __init__(self, region: Optional[str] = None):
        self.region = region
        self._clients: dict[SessionCredentials, object] = {}

    def _client_for(self, credentials: SessionCredentials):
        client = self._clients.get(credentials)
        if client is None:
            client = boto3.client(
                "ssm",
                aws_access_key_id=credentials.access_key_id,
                aws_secret_access_key=credentials.secret_access_key,
                aws_session_token=credentials.session_token,
                region_name=self.region,
            )
            self._clients[credentials] = client
        return client

    def get_parameter(self, name: str, credentials: SessionCredentials) -> str:
        try:
            response = self._client_for(credentials).get_parameter(Name=name, WithDecryption=True)
        except (BotoCoreError, ClientError) as e:
            raise ParameterResolutionError(f"Unable to resolve parameter '{name}': {e}", name) from e
        return response["Parameter"]["Value"]


def default_region(profile: Optional[str] = None) -> Optional[str]:
    """Best-effort lookup of the caller's configured default region."""
    try:
        return boto3.session.Session(profile_name=profile).region_name
    except BotoCoreError as e:
        logger.warning("Could not determine default AWS region: %s", e)
        return None


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------
def assemble_environment(spec: BuildSpecification,
                         credential_provider=None,
                         parameter_store=None,
                         options: Optional[RunnerConfig] = None) -> list[str]:
    """
    Build the container environment for ``spec``.

    Parameters
    ----------
    spec : BuildSpecification
        Parsed buildspec.
    credential_provider
        Object with ``get_session_credentials()``. Defaults to an
        StsCredentialProvider for ``options.profile``.
    parameter_store
        Object with ``get_parameter(name, credentials)``. Defaults to an
        SsmParameterStore for ``options.region``.
    options : RunnerConfig
        no_credentials / profile / region.

    Returns
    -------
    list[str]
        Assignments in the form ``NAME=value``.
    """
    options = options or RunnerConfig()
    region = options.region or default_region(options.profile)
    env = [f"{name}={value}" for name, value in spec.env.items()]

    if options.no_credentials:
        logger.info("Credentials suppressed; skipping STS and %d parameter lookups", len(spec.parameter_store))
    else:
        credential_provider = credential_provider or StsCredentialProvider(profile=options.profile)
        credentials = credential_provider.get_session_credentials()
        env.append(f"AWS_ACCESS_KEY_ID={credentials.access_key_id}")
        env.append(f"AWS_SECRET_ACCESS_KEY={credentials.secret_access_key}")
        env.append(f"AWS_SESSION_TOKEN={credentials.session_token}")

        if spec.parameter_store:
            parameter_store = parameter_store or SsmParameterStore(region=region)
        for name, parameter_name in spec.parameter_store.items():
            logger.debug("Resolving parameter %s for %s", parameter_name, name)
            env.append(f"{name}={parameter_store.get_parameter(parameter_name, credentials)}")

    if region:
        env.append(f"AWS_DEFAULT_REGION={region}")
        env.append(f"AWS_REGION={region}")
    else:
        logger.warning("No AWS region configured; AWS_REGION will not be set in the container")

    return env
