"""CI environment detection and OIDC token discovery for keyless signing."""

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

import httpx

from imagesec.consts import (
    ENV_GITHUB_TOKEN_REQUEST,
    ENV_GITHUB_TOKEN_URL,
    ENV_GITLAB_JWT,
    ENV_SIGSTORE_ID_TOKEN,
    GITHUB_OIDC_ISSUER,
    OIDC_REQUEST_TIMEOUT,
    SIGSTORE_AUDIENCE,
)
from imagesec.errors import SigningError
from imagesec.signing.keyless import validate_oidc_token

logger = logging.getLogger(__name__)


class CIProvider(str, Enum):
    """Supported CI/CD platforms."""

    NONE = "none"
    GITHUB_ACTIONS = "github-actions"
    GITLAB_CI = "gitlab-ci"
    JENKINS = "jenkins"
    CIRCLECI = "circleci"
    TRAVIS_CI = "travis-ci"


# provider -> (repository, branch, commit, build id, build url, workflow, actor)
_PROVIDER_ENV: dict[CIProvider, tuple[str, str, str, str, str, str, str]] = {
    CIProvider.GITHUB_ACTIONS: (
        "GITHUB_REPOSITORY",
        "GITHUB_REF",
        "GITHUB_SHA",
        "GITHUB_RUN_ID",
        "",
        "GITHUB_WORKFLOW",
        "GITHUB_ACTOR",
    ),
    CIProvider.GITLAB_CI: (
        "CI_PROJECT_PATH",
        "CI_COMMIT_BRANCH",
        "CI_COMMIT_SHA",
        "CI_JOB_ID",
        "CI_JOB_URL",
        "CI_PIPELINE_NAME",
        "GITLAB_USER_LOGIN",
    ),
    CIProvider.JENKINS: (
        "GIT_URL",
        "GIT_BRANCH",
        "GIT_COMMIT",
        "BUILD_NUMBER",
        "BUILD_URL",
        "JOB_NAME",
        "BUILD_USER",
    ),
    CIProvider.CIRCLECI: (
        "CIRCLE_REPOSITORY_URL",
        "CIRCLE_BRANCH",
        "CIRCLE_SHA1",
        "CIRCLE_BUILD_NUM",
        "CIRCLE_BUILD_URL",
        "CIRCLE_JOB",
        "CIRCLE_USERNAME",
    ),
    CIProvider.TRAVIS_CI: (
        "TRAVIS_REPO_SLUG",
        "TRAVIS_BRANCH",
        "TRAVIS_COMMIT",
        "TRAVIS_BUILD_ID",
        "TRAVIS_BUILD_WEB_URL",
        "TRAVIS_JOB_NAME",
        "",
    ),
}


def detect_provider(env: Mapping[str, str]) -> CIProvider:
    if env.get("GITHUB_ACTIONS") == "true":
        return CIProvider.GITHUB_ACTIONS
    if env.get("GITLAB_CI") == "true":
        return CIProvider.GITLAB_CI
    if env.get("JENKINS_URL"):
        return CIProvider.JENKINS
    if env.get("CIRCLECI") == "true":
        return CIProvider.CIRCLECI
    if env.get("TRAVIS") == "true":
        return CIProvider.TRAVIS_CI
    return CIProvider.NONE


@dataclass
class ExecutionContext:
    """Where the pipeline runs: CI provider, source revision and signing identity."""

    ci: CIProvider = CIProvider.NONE
    repository: str = ""
    branch: str = ""
    commit_sha: str = ""
    build_id: str = ""
    build_url: str = ""
    workflow: str = ""
    actor: str = ""
    oidc_issuer: str = ""
    oidc_token: str = ""

    @property
    def is_ci(self) -> bool:
        return self.ci != CIProvider.NONE

    @property
    def commit_short(self) -> str:
        return self.commit_sha[:7]

    @classmethod
    def detect(cls, env: Mapping[str, str] | None = None) -> "ExecutionContext":
        """Build a context from environment variables. Makes no network calls."""
        env = os.environ if env is None else env
        provider = detect_provider(env)

        if provider == CIProvider.NONE:
            return cls(
                repository="local",
                branch="local",
                actor=env.get("USER") or "unknown",
                oidc_token=env.get(ENV_SIGSTORE_ID_TOKEN, ""),
            )

        names = _PROVIDER_ENV[provider]
        repository, branch, commit, build_id, build_url, workflow, actor = (
            env.get(name, "") if name else "" for name in names
        )
        ctx = cls(
            ci=provider,
            repository=repository,
            branch=branch.removeprefix("refs/heads/"),
            commit_sha=commit,
            build_id=build_id,
            build_url=build_url,
            workflow=workflow,
            actor=actor,
            oidc_token=env.get(ENV_SIGSTORE_ID_TOKEN, ""),
        )
        if provider == CIProvider.GITHUB_ACTIONS:
            ctx.oidc_issuer = GITHUB_OIDC_ISSUER
            ctx.build_url = f"https://github.com/{repository}/actions/runs/{build_id}"
        elif provider == CIProvider.GITLAB_CI:
            ctx.oidc_issuer = env.get("CI_SERVER_URL", "")
            ctx.oidc_token = ctx.oidc_token or env.get(ENV_GITLAB_JWT, "")
        logger.debug(f"Detected CI provider: {provider.value}")
        return ctx

    def builder_id(self) -> str:
        """Identifier of the build system, used in provenance and attestations."""
        if self.ci == CIProvider.GITHUB_ACTIONS:
            return f"https://github.com/{self.repository}/actions/runs/{self.build_id}"
        if self.build_url:
            return self.build_url
        return f"{self.ci.value}://{self.repository or 'local'}"

    async def resolve_oidc_token(
        self,
        env: Mapping[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> str:
        """Return an OIDC token for keyless signing, or "" when none is available.

        Uses an already known token first, then the GitHub Actions token
        endpoint. Fetch failures are logged; a missing token surfaces later as
        a SigningError from the keyless signer.
        """
        if self.oidc_token:
            return self.oidc_token
        env = os.environ if env is None else env
        if self.ci != CIProvider.GITHUB_ACTIONS or not env.get(ENV_GITHUB_TOKEN_REQUEST):
            return ""
        try:
            self.oidc_token = await fetch_github_oidc_token(env, client=client)
        except SigningError as e:
            logger.warning(f"Could not obtain GitHub Actions OIDC token: {e}")
            return ""
        return self.oidc_token


async def fetch_github_oidc_token(
    env: Mapping[str, str],
    client: httpx.AsyncClient | None = None,
) -> str:
    """Request a sigstore-audience ID token from the GitHub Actions runtime.

    Raises:
        SigningError: If the request variables are missing or the request fails
    """
    request_token = env.get(ENV_GITHUB_TOKEN_REQUEST, "")
    request_url = env.get(ENV_GITHUB_TOKEN_URL, "")
    if not request_token or not request_url:
        raise SigningError("GitHub Actions OIDC token request variables are not set")

    url = f"{request_url}&audience={SIGSTORE_AUDIENCE}"
    headers = {"Authorization": f"Bearer {request_token}"}
    try:
        if client is None:
            async with httpx.AsyncClient() as own_client:
                response = await own_client.get(url, headers=headers, timeout=OIDC_REQUEST_TIMEOUT)
        else:
            response = await client.get(url, headers=headers, timeout=OIDC_REQUEST_TIMEOUT)
        response.raise_for_status()
        token = response.json().get("value", "")
    except (httpx.HTTPError, ValueError) as e:
        raise SigningError(f"OIDC token request failed: {e}") from e

    if not validate_oidc_token(token):
        raise SigningError("OIDC token response did not contain a valid JWT")
    return token
