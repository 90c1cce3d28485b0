"""
Matching of GitHub repositories to Vercel projects.

Every repository is paired with at most one deployment project, searched in
priority order:

1. the project's explicit repository link names this repository;
2. case-insensitive exact name equality;
3. case-insensitive substring containment in either direction.

Within tiers 2 and 3 the first project in the given order wins. This can
pick the wrong project when several share a substring ("blog" against both
"blog" and "blog-v2"); the behaviour is kept as-is and pinned by tests.
"""
import logging
from typing import List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from src.domain.models import (
    DeploymentProjectEntity,
    DeploymentState,
    LiveDeployment,
    LiveSource,
    RepositoryEntity,
)

logger = logging.getLogger(__name__)

PLATFORM_SUFFIX = ".vercel.app"
PAGES_SUFFIX = ".github.io"

Match = Tuple[RepositoryEntity, Optional[DeploymentProjectEntity]]


def _is_linked(repository: RepositoryEntity, project: DeploymentProjectEntity) -> bool:
    link = project.linked_repository
    if link is None or link.repo.lower() != repository.name.lower():
        return False
    return link.owner is None or link.owner.lower() == repository.owner.lower()


def find_match(
    repository: RepositoryEntity,
    deployment_projects: Sequence[DeploymentProjectEntity],
) -> Optional[DeploymentProjectEntity]:
    for project in deployment_projects:
        if _is_linked(repository, project):
            return project

    repo_name = repository.name.lower()
    for project in deployment_projects:
        if project.name.lower() == repo_name:
            return project

    for project in deployment_projects:
        project_name = project.name.lower()
        if project_name and (repo_name in project_name or project_name in repo_name):
            return project

    return None


def match(
    repositories: Sequence[RepositoryEntity],
    deployment_projects: Sequence[DeploymentProjectEntity],
) -> List[Match]:
    """Pairs every repository, in input order, with its deployment project or None."""
    matches = [(repository, find_match(repository, deployment_projects)) for repository in repositories]
    matched = sum(1 for _, project in matches if project is not None)
    logger.info(f"Matched {matched}/{len(matches)} repositories to deployment projects.")
    return matches


def classify_source(url: str) -> LiveSource:
    host = (urlparse(url).hostname or "").lower()
    if host.endswith(PLATFORM_SUFFIX):
        return LiveSource.PLATFORM
    if host.endswith(PAGES_SUFFIX):
        return LiveSource.PAGES
    return LiveSource.CUSTOM_DOMAIN


def deployment_status(project: Optional[DeploymentProjectEntity]) -> Optional[DeploymentState]:
    if project is None or project.latest_deployment is None:
        return None
    return project.latest_deployment.state


def build_live_deployment(project: Optional[DeploymentProjectEntity]) -> Optional[LiveDeployment]:
    """
    Returns the live view of a project's latest deployment, or None unless it is READY.
    A custom domain alias is preferred over the platform-assigned URL.
    """
    if deployment_status(project) is not DeploymentState.READY:
        return None

    custom_domain = next(
        (domain for domain in project.domains if not domain.lower().endswith(PLATFORM_SUFFIX)),
        None,
    )
    url = f"https://{custom_domain}" if custom_domain else project.latest_deployment.url
    return LiveDeployment(url=url, source=classify_source(url), status=DeploymentState.READY)
