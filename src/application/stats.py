from collections import Counter
from datetime import datetime, timedelta
from typing import Optional, Sequence

from src.domain.models import DeploymentBreakdown, DeploymentState, EnhancedProject, PortfolioStats

ACTIVE_WINDOW = timedelta(days=30)


def _language(project: EnhancedProject) -> Optional[str]:
    if project.repository is not None:
        return project.repository.language
    # Projects without a repository (fallback data) lead their stack with the language.
    return project.tech_stack[0] if project.tech_stack else None


def _breakdown(projects: Sequence[EnhancedProject]) -> DeploymentBreakdown:
    counts = Counter()
    for project in projects:
        status = project.deployment_status
        if project.live_deployment is not None:
            counts["successful"] += 1
        elif status in (DeploymentState.ERROR, DeploymentState.CANCELED):
            counts["failed"] += 1
        elif status is not None and status.is_in_progress:
            counts["building"] += 1
        else:
            counts["pending"] += 1
    return DeploymentBreakdown(**counts)


def summarize(projects: Sequence[EnhancedProject], now: datetime) -> PortfolioStats:
    """Aggregates a project collection. Performs no I/O."""
    languages = Counter(language for language in map(_language, projects) if language)
    categories = Counter(project.category.value for project in projects)

    return PortfolioStats(
        total_projects=len(projects),
        featured_projects=sum(1 for project in projects if project.featured),
        live_project_count=sum(1 for project in projects if project.live_deployment is not None),
        total_stars=sum(project.stars for project in projects),
        total_forks=sum(project.forks for project in projects),
        language_breakdown=dict(languages.most_common()),
        category_breakdown=dict(categories.most_common()),
        deployment_breakdown=_breakdown(projects),
        last_activity_at=max((project.last_activity_at for project in projects), default=None),
        active_projects=sum(1 for project in projects if now - project.last_activity_at < ACTIVE_WINDOW),
    )
