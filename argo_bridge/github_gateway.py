"""GitHub REST v3 gateway.

Every operation returns a ``Result``: upstream failures are logged here and
never raised past this module. The only exception that escapes is
``InvalidArgument`` for calls made without the identifiers they need.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel, ValidationError

from .cache import AppendOnlyCache
from .config import GITHUB_API, mask_token
from .logging_utils import StructuredLogger, log_exception, logger as default_logger
from .models import (
    Commit,
    DeploymentRecord,
    DeploymentState,
    DeploymentStatusRecord,
    GitHubUser,
    PullRequest,
    Repository,
    RepositoryRef,
    WorkflowRun,
)
from .results import FailureKind, InvalidArgument, Result

M = TypeVar("M", bound=BaseModel)

# Bot account with no profile email; get_user skips it
DEPENDABOT_GITHUB_LOGIN = "dependabot[bot]"

RepoName = Union[str, RepositoryRef]


def github_api_headers(token: str) -> Dict[str, str]:
    h = {
        "Accept": "application/vnd.github+json",
        "Content-Type": "application/json",
        "User-Agent": "argo-bridge",
    }
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def _repo(repo: RepoName) -> str:
    return repo.full_name if isinstance(repo, RepositoryRef) else str(repo or "")


class GitHubGateway:
    def __init__(
        self,
        token: str = "",
        api_url: str = GITHUB_API,
        *,
        session: Any = None,
        users: Optional[AppendOnlyCache[GitHubUser]] = None,
        timeout: float = 15.0,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.logger = logger or default_logger
        self.api_url = (api_url or GITHUB_API).rstrip("/")
        self.timeout = timeout
        # Anything with requests.request's signature; the requests module by default
        self.session = session or requests
        self.headers = github_api_headers(token)
        # login -> GitHubUser, never evicted
        self.known_users: AppendOnlyCache[GitHubUser] = users if users is not None else AppendOnlyCache()
        if token:
            self.logger.debug("GITHUB_TOKEN configured", token=mask_token(token))
        else:
            self.logger.warn("GITHUB_TOKEN is not set!")

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        expect: int = 200,
        severity: str = "error",
        **kwargs: Any,
    ) -> Result[Any]:
        url = f"{self.api_url}{path}"
        try:
            r = self.session.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            log_exception(self.logger, e, operation=operation, url=url)
            return Result.fail(FailureKind.TRANSPORT, f"{operation} request failed: {e.__class__.__name__}")

        if r.status_code == 404:
            self.logger.info(f"{method} {url} returned 404", operation=operation)
            return Result.fail(FailureKind.NOT_FOUND, f"{operation}: not found")
        if r.status_code != expect:
            getattr(self.logger, severity)(f"{method} {url} returned {r.status_code}!", operation=operation, status=r.status_code)
            return Result.fail(FailureKind.UPSTREAM, f"{operation} failed: HTTP {r.status_code}")

        if r.status_code == 204 or not r.content:
            return Result.of(None)
        try:
            return Result.of(r.json())
        except ValueError as e:
            log_exception(self.logger, e, operation=operation, url=url)
            return Result.fail(FailureKind.TRANSPORT, f"{operation}: response is not JSON")

    def _parse(self, model: Type[M], result: Result[Any], operation: str) -> Result[M]:
        if not result.ok:
            return Result.fail(result.error, result.reason)
        try:
            return Result.of(model.model_validate(result.value))
        except ValidationError as e:
            log_exception(self.logger, e, operation=operation)
            return Result.fail(FailureKind.TRANSPORT, f"{operation}: unexpected response shape")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_user(self, github_login: str) -> Result[GitHubUser]:
        """Fetch a GitHub user's details, cached by login for the process lifetime.

        @see https://docs.github.com/en/rest/users/users#get-a-user
        """
        if not github_login:
            return Result.fail(FailureKind.SKIPPED, "login is empty")
        if github_login == DEPENDABOT_GITHUB_LOGIN:
            return Result.fail(FailureKind.SKIPPED, f"{github_login} is not a person")
        cached = self.known_users.get(github_login)
        if cached is not None:
            return Result.of(cached)

        result = self._parse(GitHubUser, self._request("GET", f"/users/{github_login}", operation="get_user"), "get_user")
        if result.ok:
            self.known_users.put(github_login, result.value)
        return result

    def get_repository(self, full_repo_name: RepoName) -> Result[Repository]:
        """Fetch a repository; a missing repository is a quiet NOT_FOUND."""
        path = f"/repos/{_repo(full_repo_name)}"
        return self._parse(Repository, self._request("GET", path, operation="get_repository", severity="fatal"), "get_repository")

    def get_commit(self, full_repo_name: RepoName, commit_sha: str) -> Result[Commit]:
        path = f"/repos/{_repo(full_repo_name)}/commits/{commit_sha}"
        return self._parse(Commit, self._request("GET", path, operation="get_commit", severity="fatal"), "get_commit")

    def get_latest_deployment(self, repo: RepoName, environment: str, sha: str) -> Result[DeploymentRecord]:
        """Latest deployment of ``sha`` to ``environment``.

        @see https://docs.github.com/en/rest/deployments/deployments#list-deployments
        """
        self.logger.debug("get_latest_deployment", repo=_repo(repo), environment=environment, sha=sha)
        result = self._request(
            "GET",
            f"/repos/{_repo(repo)}/deployments",
            operation="get_latest_deployment",
            params={"environment": environment, "sha": sha, "per_page": 1},
        )
        if not result.ok:
            return Result.fail(result.error, result.reason)
        if not isinstance(result.value, list) or not result.value:
            return Result.fail(FailureKind.NOT_FOUND, "no matching deployments")
        return self._parse(DeploymentRecord, Result.of(result.value[0]), "get_latest_deployment")

    def set_deployment_status(
        self, repo: RepoName, deployment_id: Union[int, str], state: Union[DeploymentState, str]
    ) -> Result[DeploymentStatusRecord]:
        """Create a deployment status.

        @see https://docs.github.com/en/rest/deployments/statuses#create-a-deployment-status
        """
        try:
            state = DeploymentState(state)
        except ValueError:
            allowed = ", ".join(s.value for s in DeploymentState)
            raise InvalidArgument(f"state must be one of {allowed}, got {state!r}") from None

        self.logger.debug("set_deployment_status", repo=_repo(repo), deployment_id=deployment_id, state=state.value)
        result = self._request(
            "POST",
            f"/repos/{_repo(repo)}/deployments/{deployment_id}/statuses",
            operation="set_deployment_status",
            expect=201,
            json={"state": state.value},
        )
        return self._parse(DeploymentStatusRecord, result, "set_deployment_status")

    def invoke_workflow_dispatch(
        self,
        workflow_repo: RepoName,
        workflow_ref: str,
        workflow_name: str,
        inputs: Optional[Dict[str, Any]] = None,
    ) -> Result[None]:
        """Fire a workflow_dispatch event; failures are only logged.

        @see https://docs.github.com/en/rest/actions/workflows#create-a-workflow-dispatch-event
        """
        inputs = inputs or {}
        self.logger.info(
            f"Invoking workflow dispatch {workflow_name} in {_repo(workflow_repo)}:{workflow_ref}",
            inputs=inputs,
        )
        return self._request(
            "POST",
            f"/repos/{_repo(workflow_repo)}/actions/workflows/{workflow_name}/dispatches",
            operation="invoke_workflow_dispatch",
            expect=204,
            json={"ref": workflow_ref, "inputs": inputs},
        )

    def list_pull_requests_for_commit(self, repo: RepoName, commit_sha: str) -> Result[List[PullRequest]]:
        """Pull requests associated with a commit, exactly as GitHub returns them.

        @see https://docs.github.com/en/rest/commits/commits#list-pull-requests-associated-with-a-commit
        """
        self.logger.debug("list_pull_requests_for_commit", repo=_repo(repo), sha=commit_sha)
        result = self._request("GET", f"/repos/{_repo(repo)}/commits/{commit_sha}/pulls", operation="list_pull_requests_for_commit")
        if not result.ok:
            return Result.fail(result.error, result.reason)
        if not isinstance(result.value, list):
            self.logger.error("list_pull_requests_for_commit returned a non-list payload", repo=_repo(repo))
            return Result.fail(FailureKind.UPSTREAM, "expected a list of pull requests")
        try:
            return Result.of([PullRequest.model_validate(pr) for pr in result.value])
        except ValidationError as e:
            log_exception(self.logger, e, operation="list_pull_requests_for_commit")
            return Result.fail(FailureKind.TRANSPORT, "list_pull_requests_for_commit: unexpected response shape")

    def determine_workflow_run_for_commit(self, repo: RepoName, workflow_name: str, commit_sha: str) -> Result[WorkflowRun]:
        """Find the push-triggered run of ``workflow_name`` for ``commit_sha``."""
        if not _repo(repo):
            raise InvalidArgument("repo is required!")
        if not workflow_name:
            raise InvalidArgument("workflow_name is required!")
        if not commit_sha:
            raise InvalidArgument("commit_sha is required!")

        result = self._request(
            "GET",
            f"/repos/{_repo(repo)}/actions/workflows/{workflow_name}/runs",
            operation="determine_workflow_run_for_commit",
            params={"event": "push", "head_sha": commit_sha},
        )
        if not result.ok:
            return Result.fail(result.error, result.reason)
        payload = result.value if isinstance(result.value, dict) else {}
        runs = payload.get("workflow_runs") or []
        self.logger.debug(
            f"Found {len(runs)} workflow runs of {_repo(repo)}/{workflow_name} for {commit_sha[:8]}.",
        )
        # GitHub already filters by head_sha; only accept an exact match.
        for run in runs:
            if isinstance(run, dict) and run.get("head_sha") == commit_sha:
                return self._parse(WorkflowRun, Result.of(run), "determine_workflow_run_for_commit")
        return Result.fail(FailureKind.NOT_FOUND, "no workflow run for commit")
