from typing import Mapping, Optional

from .github_gateway import GitHubGateway
from .logging_utils import StructuredLogger, logger as default_logger
from .models import DeploymentConfig


class DeploymentRegistry:
    """Resolves a deployment name to its configuration and GitHub repository.

    Lookups are never cached: a repository created after a failed lookup is
    found on the next request.
    """

    def __init__(
        self,
        deployments: Mapping[str, DeploymentConfig],
        github: GitHubGateway,
        organization: str,
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.deployments = dict(deployments)
        self.github = github
        self.organization = organization
        self.logger = logger or default_logger

    def lookup_deployment(self, deployment_name: str) -> Optional[DeploymentConfig]:
        """Return the deployment's config with ``github.repository`` filled in.

        A configured repository is returned as-is. Otherwise the repository
        ``<organization>/<deployment_name>`` is looked up on GitHub; if it does
        not exist the deployment is unrecognized and None is returned.
        """
        if not deployment_name:
            return None

        deployment = self.deployments.get(deployment_name)
        if deployment is not None and deployment.repository:
            return deployment
        if not self.organization:
            self.logger.error(
                f'Deployment "{deployment_name}" has no github repository config and $GITHUB_ORG_NAME is not set!'
            )
            return None

        repository_name = f"{self.organization}/{deployment_name}"
        if deployment is not None:
            self.logger.debug(
                f'Deployment "{deployment_name}" has no github repository config, '
                f'will attempt to lookup GitHub repository "{repository_name}"!'
            )
        else:
            self.logger.debug(
                f'Deployment "{deployment_name}" not in config, '
                f'will attempt to lookup GitHub repository "{repository_name}"!'
            )
            deployment = DeploymentConfig()

        repository = self.github.get_repository(repository_name).value
        if repository is None:
            return None
        return deployment.with_repository(repository.full_name)

