import pytest
import requests

from conftest import FakeResponse, FakeSession

from argo_bridge.github_gateway import DEPENDABOT_GITHUB_LOGIN, GitHubGateway
from argo_bridge.models import DeploymentState, RepositoryRef
from argo_bridge.results import FailureKind, InvalidArgument


def make_gateway(log, *responses):
    session = FakeSession(*responses)
    gateway = GitHubGateway("ghp_test_token", "https://github.example/api/", session=session, timeout=5, logger=log)
    return gateway, session


def test_every_call_carries_bearer_token(log) -> None:
    gateway, session = make_gateway(log, FakeResponse(200, {"full_name": "acme/svc"}))

    gateway.get_repository("acme/svc")

    headers = session.calls[0]["headers"]
    assert headers["Authorization"] == "Bearer ghp_test_token"
    assert headers["Accept"] == "application/vnd.github+json"


def test_default_transport_is_requests_module() -> None:
    assert GitHubGateway("t").session is requests


def test_get_user_skips_dependabot_without_calling_github(log) -> None:
    gateway, session = make_gateway(log)

    result = gateway.get_user(DEPENDABOT_GITHUB_LOGIN)

    assert result.value is None
    assert result.error is FailureKind.SKIPPED
    assert session.calls == []


def test_get_user_is_fetched_once_then_cached(log) -> None:
    gateway, session = make_gateway(
        log, FakeResponse(200, {"login": "octocat", "email": "octocat@example.com", "id": 1})
    )

    first = gateway.get_user("octocat")
    second = gateway.get_user("octocat")

    assert first.value.email == "octocat@example.com"
    assert second.value == first.value
    assert len(session.calls) == 1
    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == "https://github.example/api/users/octocat"
    assert session.calls[0]["timeout"] == 5


def test_get_user_not_found_is_not_cached(log) -> None:
    gateway, session = make_gateway(log, FakeResponse(404, {"message": "Not Found"}), FakeResponse(404, {}))

    assert gateway.get_user("ghost").error is FailureKind.NOT_FOUND
    assert gateway.get_user("ghost").error is FailureKind.NOT_FOUND
    assert len(session.calls) == 2
    assert "ghost" not in gateway.known_users


def test_get_user_server_error_is_not_cached(logs) -> None:
    gateway, session = make_gateway(
        logs.logger,
        FakeResponse(500, {"message": "Server Error"}),
        FakeResponse(200, {"login": "octocat", "email": "octocat@example.com"}),
    )

    failed = gateway.get_user("octocat")

    assert failed.value is None
    assert failed.error is FailureKind.UPSTREAM
    assert "octocat" not in gateway.known_users
    assert any("returned 500" in m for m in logs.messages("ERROR"))
    assert gateway.get_user("octocat").value.email == "octocat@example.com"
    assert len(session.calls) == 2


def test_get_repository_missing_is_quiet(logs) -> None:
    gateway, _ = make_gateway(logs.logger, FakeResponse(404, {"message": "Not Found"}))

    result = gateway.get_repository("acme/nope")

    assert result.error is FailureKind.NOT_FOUND
    assert logs.messages("FATAL") == []
    assert logs.messages("ERROR") == []


def test_get_repository_server_error_is_logged_fatal(logs) -> None:
    gateway, _ = make_gateway(logs.logger, FakeResponse(502, {"message": "Bad Gateway"}))

    result = gateway.get_repository(RepositoryRef(owner="acme", name="svc"))

    assert result.error is FailureKind.UPSTREAM
    assert any("/repos/acme/svc returned 502" in m for m in logs.messages("FATAL"))


def test_transport_error_becomes_result(logs) -> None:
    gateway, _ = make_gateway(logs.logger, requests.ConnectionError("connection refused"))

    result = gateway.get_commit("acme/svc", "abc123")

    assert result.value is None
    assert result.error is FailureKind.TRANSPORT
    assert logs.messages("FATAL")


def test_get_latest_deployment_filters_by_environment_and_sha(log) -> None:
    gateway, session = make_gateway(log, FakeResponse(200, [{"id": 7, "sha": "abc123", "environment": "production"}]))

    result = gateway.get_latest_deployment("acme/svc", "production", "abc123")

    assert result.value.id == 7
    assert session.calls[0]["url"].endswith("/repos/acme/svc/deployments")
    assert session.calls[0]["params"] == {"environment": "production", "sha": "abc123", "per_page": 1}


def test_get_latest_deployment_empty_list_is_not_found(log) -> None:
    gateway, _ = make_gateway(log, FakeResponse(200, []))

    assert gateway.get_latest_deployment("acme/svc", "production", "abc123").error is FailureKind.NOT_FOUND


def test_set_deployment_status_posts_state(log) -> None:
    gateway, session = make_gateway(log, FakeResponse(201, {"id": 99, "state": "success"}))

    result = gateway.set_deployment_status("acme/svc", 7, DeploymentState.SUCCESS)

    assert result.ok
    assert result.value.state == "success"
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"].endswith("/repos/acme/svc/deployments/7/statuses")
    assert call["json"] == {"state": "success"}


def test_set_deployment_status_requires_created(log) -> None:
    gateway, _ = make_gateway(log, FakeResponse(200, {"id": 99, "state": "success"}))

    assert gateway.set_deployment_status("acme/svc", 7, "success").error is FailureKind.UPSTREAM


def test_set_deployment_status_rejects_unknown_state(log) -> None:
    gateway, session = make_gateway(log)

    with pytest.raises(InvalidArgument):
        gateway.set_deployment_status("acme/svc", 7, "exploded")
    assert session.calls == []


def test_invoke_workflow_dispatch(log) -> None:
    gateway, session = make_gateway(log, FakeResponse(204))

    result = gateway.invoke_workflow_dispatch("acme/ops", "main", "deploy.yml", {"service": "svc"})

    assert result.ok
    assert result.value is None
    assert session.calls[0]["url"].endswith("/repos/acme/ops/actions/workflows/deploy.yml/dispatches")
    assert session.calls[0]["json"] == {"ref": "main", "inputs": {"service": "svc"}}


def test_list_pull_requests_for_commit(log) -> None:
    gateway, _ = make_gateway(
        log,
        FakeResponse(200, [
            {"id": 1, "number": 10, "url": "u1", "user": {"login": "alice"}},
            {"id": 2, "number": 11, "url": "u2", "user": {"login": "bob"}},
        ]),
    )

    prs = gateway.list_pull_requests_for_commit("acme/svc", "abc123").value

    assert [pr.author_login for pr in prs] == ["alice", "bob"]


def test_determine_workflow_run_requires_exact_sha(log) -> None:
    gateway, session = make_gateway(
        log,
        FakeResponse(200, {"total_count": 2, "workflow_runs": [
            {"id": 1, "head_sha": "abc1230000"},
            {"id": 2, "head_sha": "abc123"},
        ]}),
    )

    run = gateway.determine_workflow_run_for_commit("acme/svc", "ci.yml", "abc123").value

    assert run.id == 2
    assert session.calls[0]["params"] == {"event": "push", "head_sha": "abc123"}


def test_determine_workflow_run_without_match_is_not_found(log) -> None:
    gateway, _ = make_gateway(log, FakeResponse(200, {"workflow_runs": [{"id": 1, "head_sha": "other"}]}))

    assert gateway.determine_workflow_run_for_commit("acme/svc", "ci.yml", "abc123").error is FailureKind.NOT_FOUND


@pytest.mark.parametrize("repo,workflow,sha", [("", "ci.yml", "abc"), ("acme/svc", "", "abc"), ("acme/svc", "ci.yml", "")])
def test_determine_workflow_run_requires_arguments(log, repo, workflow, sha) -> None:
    gateway, session = make_gateway(log)

    with pytest.raises(InvalidArgument):
        gateway.determine_workflow_run_for_commit(repo, workflow, sha)
    assert session.calls == []
