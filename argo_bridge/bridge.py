"""The Argo Bridge application context.

One ``ArgoBridge`` is built at startup and handed to the HTTP layer. It owns
the GitHub and Slack gateways (and their caches), the static deployment
config and user roster, and the request intake.
"""
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .config import BridgeConfig, load_config_from_env, load_deployment_config, load_user_roster, mask_token
from .deployments import DeploymentRegistry
from .github_gateway import GitHubGateway
from .identity import IdentityResolver
from .intake import HTTP_NO_CONTENT, Dispatcher, RequestIntake
from .logging_utils import StructuredLogger, create_logger
from .models import DeploymentConfig, PullRequest, RosterEntry
from .slack_gateway import SlackGateway
from .version import ARGO_BRIDGE_VERSION


class ArgoBridge:
    VERSION = ARGO_BRIDGE_VERSION

    def __init__(
        self,
        config: BridgeConfig,
        *,
        deployments: Optional[Mapping[str, DeploymentConfig]] = None,
        roster: Optional[List[RosterEntry]] = None,
        github: Optional[GitHubGateway] = None,
        slack: Optional[SlackGateway] = None,
        dispatcher: Optional[Dispatcher] = None,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or create_logger(config.log_level, config.json_logging)
        if deployments is None:
            deployments = load_deployment_config(config.deployments_file, self.logger)
        if roster is None:
            roster = load_user_roster(config.users_file, self.logger)

        self.github = github or GitHubGateway(
            config.github_token,
            config.github_api_url,
            timeout=config.http_timeout,
            logger=self.logger,
        )
        self.slack = slack or SlackGateway(
            config.slack_token,
            config.slack_app_id,
            config.slack_api_url,
            timeout=config.http_timeout,
            logger=self.logger,
        )
        self.registry = DeploymentRegistry(deployments, self.github, config.github_org, logger=self.logger)
        self.identity = IdentityResolver(roster, self.github, self.slack, logger=self.logger)
        self.intake = RequestIntake(
            config.bridge_token,
            dispatcher or self.classify_and_dispatch,
            log_body=config.log_body,
            logger=self.logger,
        )

        if not config.bridge_token:
            self.logger.fatal("$ARGO_BRIDGE_TOKEN is not set or empty! Every request will be rejected.")
        else:
            self.logger.debug("$ARGO_BRIDGE_TOKEN", token=mask_token(config.bridge_token))
        if not config.github_org:
            self.logger.fatal("$GITHUB_ORG_NAME is not set or empty! Unconfigured deployments cannot be resolved.")
        self.logger.debug("$DEPLOYMENT_NOTIFICATIONS_CHANNEL_ID", value=config.deployment_notifications_channel_id)
        self.logger.debug("$P_ARGOCD_NOTIFICATIONS_CHANNEL_ID", value=config.argocd_notifications_channel_id)

    @classmethod
    def from_config(cls, config: BridgeConfig, **kwargs: Any) -> "ArgoBridge":
        return cls(config, **kwargs)

    @classmethod
    def from_env(cls) -> "ArgoBridge":
        return cls.from_config(load_config_from_env())

    def handle(self, headers: Mapping[str, str], body: Union[bytes, str, None]) -> int:
        return self.intake.handle(headers, body)

    def classify_and_dispatch(self, body: Dict[str, Any]) -> int:
        """Default dispatcher: accepts the notification without acting on it.

        Rollout and continuous-deployment handlers plug in here through the
        ``dispatcher`` constructor argument.
        """
        return HTTP_NO_CONTENT

    # Helpers shared with notification handlers

    def lookup_deployment(self, deployment_name: str) -> Optional[DeploymentConfig]:
        return self.registry.lookup_deployment(deployment_name)

    def find_slack_id_for(self, github_login: str) -> Optional[str]:
        return self.identity.find_chat_id_for(github_login)

    def extract_github_logins_from_pull_requests(self, pull_requests: Iterable[Union[PullRequest, Mapping[str, Any]]]) -> Dict[str, str]:
        return self.identity.extract_logins_with_chat_ids(pull_requests)
