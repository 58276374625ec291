from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .github_gateway import GitHubGateway
from .logging_utils import StructuredLogger, logger as default_logger
from .models import PullRequest, RosterEntry
from .slack_gateway import SlackGateway


class IdentityResolver:
    """Maps GitHub logins to Slack user ids.

    The roster wins over any remote lookup; otherwise the GitHub profile email
    is looked up in Slack.
    """

    def __init__(
        self,
        roster: List[RosterEntry],
        github: GitHubGateway,
        slack: SlackGateway,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.roster = list(roster)
        self.github = github
        self.slack = slack
        self.logger = logger or default_logger

    def _configured_user(self, github_login: str) -> Optional[RosterEntry]:
        return next((user for user in self.roster if user.github_login == github_login), None)

    def find_chat_id_for(self, github_login: str) -> Optional[str]:
        """Return the Slack id for ``github_login``, or None if it cannot be resolved."""
        if not github_login:
            return None

        configured = self._configured_user(github_login)
        if configured is not None:
            return configured.slack_id or None

        github_user = self.github.get_user(github_login).value
        self.logger.debug("github_user", login=github_login, found=github_user is not None)
        if github_user is None or not github_user.email:
            return None

        slack_user = self.slack.lookup_user_by_email(github_user.email).value
        if slack_user is None:
            return None
        return slack_user.id

    def extract_logins_with_chat_ids(
        self, pull_requests: Iterable[Union[PullRequest, Mapping[str, Any]]]
    ) -> Dict[str, str]:
        """Resolve the authors of ``pull_requests`` to Slack ids.

        Keys keep the order authors first appear in. Each login is tried once;
        logins that do not resolve are left out.
        """
        github_logins: Dict[str, str] = {}
        attempted = set()

        for pr in pull_requests or []:
            if not isinstance(pr, PullRequest):
                try:
                    pr = PullRequest.model_validate(pr)
                except ValidationError as e:
                    self.logger.debug("Skipping unreadable pull request", error=str(e))
                    continue
            github_login = pr.author_login
            self.logger.debug(f"- {pr.id}: {pr.url} by {github_login}")
            if not github_login or github_login in attempted:
                continue
            attempted.add(github_login)

            slack_id = self.find_chat_id_for(github_login)
            if slack_id:
                github_logins[github_login] = slack_id

        self.logger.debug(
            f"Found {len(github_logins)} known GitHub logins: {', '.join(github_logins)}",
        )
        return github_logins
