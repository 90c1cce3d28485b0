import aiohttp
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from src.application import reconciler, scoring
from src.application.fallback import fallback_projects
from src.application.stats import summarize
from src.config import Settings
from src.domain.exceptions import RateLimitError, UpstreamError
from src.domain.models import (
    DeploymentProjectEntity,
    EnhancedProject,
    PortfolioStats,
    RepositoryEntity,
    UserProfile,
)
from src.infrastructure.cache import (
    COMPUTED_STATS,
    DEPLOYMENTS,
    PROJECTS,
    REPOSITORIES,
    USER_PROFILE,
    TTLCache,
)
from src.infrastructure.github_client import GitHubClient
from src.infrastructure.vercel_client import VercelClient

logger = logging.getLogger(__name__)

# Limit concurrent connections per aggregation pass
CONNECTOR_LIMIT = 10
# A rate-limited source is left alone for at least this many of its TTLs.
RATE_LIMIT_TTL_MULTIPLIER = 4
# Seconds a source is left alone after any other upstream failure.
FAILURE_COOLDOWN_SECONDS = 30


class AggregationState(str, Enum):
    FETCHING = "fetching"
    RECONCILING = "reconciling"
    SCORING = "scoring"
    READY = "ready"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class AggregationResult:
    projects: List[EnhancedProject]
    state: AggregationState
    # Ready, but built without deployment data.
    degraded: bool = False


def _default_session() -> aiohttp.ClientSession:
    return aiohttp.ClientSession(connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT))


class PortfolioService:
    """
    Single entry point for portfolio data.

    Fetches repositories and deployments concurrently through the shared
    cache, reconciles and scores them, and degrades instead of failing:
    a deployment outage drops live links, a repository outage serves the
    last good collection or the static fallback set. Nothing raises to
    the caller.

    A source that fails is not called again for a while: until its rate
    limit resets, or for a short cooldown after any other upstream error.
    """

    def __init__(
        self,
        settings: Settings,
        cache: Optional[TTLCache] = None,
        github_client: Optional[GitHubClient] = None,
        vercel_client: Optional[VercelClient] = None,
        session_factory: Callable[[], aiohttp.ClientSession] = _default_session,
    ):
        self.settings = settings
        self.cache = cache if cache is not None else TTLCache()

        if github_client is None and settings.has_github_credentials:
            github_client = GitHubClient(
                token=settings.github_token,
                username=settings.github_username,
                base_url=settings.github_api_url,
                timeout=settings.request_timeout,
            )
        if vercel_client is None and settings.has_vercel_credentials:
            vercel_client = VercelClient(
                token=settings.vercel_token,
                team_id=settings.vercel_team_id,
                base_url=settings.vercel_api_url,
                timeout=settings.request_timeout,
            )

        self.github_client = github_client
        self.vercel_client = vercel_client
        self.session_factory = session_factory
        # Source key -> (blocked until, error that caused it).
        self._blocked: Dict[str, Tuple[datetime, UpstreamError]] = {}

    @property
    def projects_ttl(self) -> float:
        return min(self.settings.ttl.repositories, self.settings.ttl.deployments)

    def _block(self, key: str, error: UpstreamError, ttl: float) -> None:
        now = self.cache.clock()
        if isinstance(error, RateLimitError):
            until = now + timedelta(seconds=ttl * RATE_LIMIT_TTL_MULTIPLIER)
            if error.reset_at:
                try:
                    reset = datetime.fromisoformat(error.reset_at.replace("Z", "+00:00"))
                    if reset.tzinfo is None:
                        reset = reset.replace(tzinfo=timezone.utc)
                    until = max(until, reset)
                except ValueError:
                    logger.debug(f"Ignoring unparseable reset time {error.reset_at!r}.")
            logger.warning(f"{error} Not calling '{key}' again until {until.isoformat()}.")
        else:
            until = now + timedelta(seconds=FAILURE_COOLDOWN_SECONDS)
            logger.info(f"Pausing '{key}' fetches until {until.isoformat()} after {type(error).__name__}.")
        self._blocked[key] = (until, error)

    async def _cached(self, key: str, ttl: float, fetch_fn: Callable[[], Awaitable]):
        blocked = self._blocked.get(key)
        if blocked is not None:
            until, error = blocked
            if self.cache.clock() < until:
                entry = self.cache.peek(key)
                if entry is not None:
                    return entry.value
                raise error.with_traceback(None)
            del self._blocked[key]

        try:
            return await self.cache.get_or_fetch(key, ttl, fetch_fn)
        except UpstreamError as e:
            self._block(key, e, ttl)
            raise

    async def _fetch_repositories(self, session) -> List[RepositoryEntity]:
        return await self._cached(
            REPOSITORIES,
            self.settings.ttl.repositories,
            lambda: self.github_client.fetch_repositories(session),
        )

    async def _fetch_deployments(self, session) -> List[DeploymentProjectEntity]:
        if self.vercel_client is None:
            logger.info("Vercel credentials are not configured. Skipping deployment data.")
            return []
        return await self._cached(
            DEPLOYMENTS,
            self.settings.ttl.deployments,
            lambda: self.vercel_client.fetch_deployment_projects(session),
        )

    @staticmethod
    def _log_source_failure(source: str, error: BaseException) -> None:
        if isinstance(error, UpstreamError):
            logger.error(f"{source} fetch failed ({type(error).__name__}): {error}")
        else:
            logger.error(f"{source} fetch failed unexpectedly: {error!r}", exc_info=error)

    def _fallback(self, reason: str) -> AggregationResult:
        previous = self.cache.peek(PROJECTS)
        if previous is not None:
            logger.warning(f"{reason} Serving last good projects from {previous.fetched_at.isoformat()}.")
            return AggregationResult(previous.value, AggregationState.FALLBACK)
        logger.warning(f"{reason} Serving static fallback projects.")
        return AggregationResult(fallback_projects(), AggregationState.FALLBACK)

    def _select_repositories(self, repositories: Sequence[RepositoryEntity]) -> List[RepositoryEntity]:
        selected: List[RepositoryEntity] = []
        seen_ids = set()
        for repository in repositories:
            # Pages may overlap when a repository is updated mid-pagination.
            if repository.id in seen_ids:
                continue
            if self.settings.exclude_forks and repository.is_fork:
                continue
            if self.settings.exclude_archived and repository.is_archived:
                continue
            seen_ids.add(repository.id)
            selected.append(repository)
        return selected

    def build_projects(
        self,
        repositories: Sequence[RepositoryEntity],
        deployment_projects: Sequence[DeploymentProjectEntity],
        now: datetime,
    ) -> List[EnhancedProject]:
        """Reconciles and scores one snapshot of upstream data. Pure, no I/O."""
        logger.info(f"State: {AggregationState.RECONCILING.value}.")
        matches = reconciler.match(repositories, deployment_projects)

        logger.info(f"State: {AggregationState.SCORING.value}.")
        recent_ids = scoring.recent_repository_ids(repositories, self.settings.featured_recent_count)
        slugs = scoring.unique_slugs([repository.name for repository, _ in matches])

        projects = []
        for (repository, project), slug in zip(matches, slugs):
            scores = scoring.score(repository, project, now=now)
            projects.append(EnhancedProject(
                id=repository.id,
                slug=slug,
                name=repository.name,
                display_name=scoring.display_name(repository.name),
                description=repository.description or scoring.DEFAULT_DESCRIPTION,
                tech_stack=scoring.extract_tech_stack(repository),
                category=scoring.categorize(repository),
                featured=scoring.is_featured(repository, self.settings.featured_overrides, recent_ids),
                repository=repository,
                live_deployment=reconciler.build_live_deployment(project),
                deployment_status=reconciler.deployment_status(project),
                homepage_url=repository.homepage_url,
                deployment_score=scores.deployment_score,
                activity_score=scores.activity_score,
                popularity_score=scores.popularity_score,
                last_activity_at=scoring.last_activity(repository, project),
            ))

        ranked = scoring.rank(projects)
        if self.settings.max_projects is not None:
            ranked = ranked[:self.settings.max_projects]
        return ranked

    async def _aggregate(self) -> AggregationResult:
        cached = self.cache.peek(PROJECTS)
        if cached is not None and cached.is_fresh(self.projects_ttl, self.cache.clock()):
            return AggregationResult(cached.value, AggregationState.READY)

        if self.github_client is None:
            return self._fallback("GitHub credentials are not configured.")

        logger.info(f"State: {AggregationState.FETCHING.value}.")
        try:
            async with self.session_factory() as session:
                repositories, deployment_projects = await asyncio.gather(
                    self._fetch_repositories(session),
                    self._fetch_deployments(session),
                    return_exceptions=True,
                )
        except (aiohttp.ClientError, OSError) as e:
            return self._fallback(f"Could not open an HTTP session: {e}.")

        if isinstance(repositories, BaseException):
            self._log_source_failure("Repository", repositories)
            return self._fallback("Repository data is unavailable.")

        repositories = self._select_repositories(repositories)
        if not repositories:
            return self._fallback("No repositories to show.")

        degraded = isinstance(deployment_projects, BaseException)
        if degraded:
            self._log_source_failure("Deployment", deployment_projects)
            logger.warning("Continuing without deployment data; live links are omitted.")
            deployment_projects = []

        now = self.cache.clock()
        projects = self.build_projects(repositories, deployment_projects, now)
        if not degraded:
            self.cache.set(PROJECTS, projects)

        logger.info(
            f"State: {AggregationState.READY.value}. {len(projects)} projects, "
            f"{sum(1 for p in projects if p.live_deployment)} live"
            f"{' (degraded)' if degraded else ''}."
        )
        return AggregationResult(projects, AggregationState.READY, degraded)

    async def get_enhanced_projects(self) -> List[EnhancedProject]:
        """Returns the ranked project collection. Never raises and never returns an empty list."""
        try:
            result = await self._aggregate()
        except Exception as e:
            logger.exception(f"Aggregation failed unexpectedly: {e}")
            result = self._fallback("Aggregation failed.")
        return list(result.projects)

    async def get_portfolio_stats(self) -> PortfolioStats:
        """Summarizes the current project collection without extra upstream calls."""
        entry = self.cache.peek(COMPUTED_STATS)
        if entry is not None and entry.is_fresh(self.settings.ttl.computed_stats, self.cache.clock()):
            return entry.value

        try:
            result = await self._aggregate()
        except Exception as e:
            logger.exception(f"Aggregation failed unexpectedly: {e}")
            result = self._fallback("Aggregation failed.")

        stats = summarize(result.projects, self.cache.clock())
        if result.state is AggregationState.READY and not result.degraded:
            self.cache.set(COMPUTED_STATS, stats)
        return stats

    async def get_user_profile(self) -> Optional[UserProfile]:
        """Returns the portfolio owner's profile, or None when it cannot be fetched."""
        if self.github_client is None:
            return None
        try:
            async with self.session_factory() as session:
                return await self._cached(
                    USER_PROFILE,
                    self.settings.ttl.user_profile,
                    lambda: self.github_client.fetch_user(session),
                )
        except UpstreamError as e:
            logger.error(f"Profile fetch failed ({type(e).__name__}): {e}")
        except (aiohttp.ClientError, OSError) as e:
            logger.error(f"Could not open an HTTP session: {e}")
        return None
