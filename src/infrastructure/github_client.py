import aiohttp
import logging
from typing import List

from src.config import GITHUB_API_URL
from src.domain.exceptions import ValidationError
from src.domain.models import RepositoryEntity, UserProfile
from src.infrastructure.acl import GitHubTranslator
from src.infrastructure.http_client import REQUEST_TIMEOUT_SECONDS, RestClient

logger = logging.getLogger(__name__)

PAGE_SIZE = 100
# Hard ceiling on pagination to bound worst-case latency and upstream load.
MAX_PAGES = 20


class GitHubClient(RestClient):
    """
    Client for the GitHub REST API.
    Fetches the portfolio owner's profile and public repositories.
    """

    source = "github"

    def __init__(
        self,
        token: str,
        username: str,
        base_url: str = GITHUB_API_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        super().__init__(token=token, base_url=base_url, timeout=timeout)
        self.headers["Accept"] = "application/vnd.github+json"
        self.headers["X-GitHub-Api-Version"] = "2022-11-28"
        self.username = username

    async def fetch_user(self, session: aiohttp.ClientSession) -> UserProfile:
        data = await self.get_json(session, f"/users/{self.username}")
        return GitHubTranslator.to_user(data)

    async def fetch_repositories(self, session: aiohttp.ClientSession) -> List[RepositoryEntity]:
        """
        Fetches every repository owned by the user, most recently updated first.

        Pagination stops at the first short page or after MAX_PAGES pages.
        Items that cannot be translated are logged and skipped.
        """
        repositories: List[RepositoryEntity] = []

        for page in range(1, MAX_PAGES + 1):
            params = {"per_page": PAGE_SIZE, "page": page, "sort": "updated", "type": "owner"}
            data = await self.get_json(session, f"/users/{self.username}/repos", params=params)

            if not isinstance(data, list):
                raise ValidationError(
                    f"Expected a list of repositories, got {type(data).__name__}.", source=self.source
                )

            for raw_repo in data:
                try:
                    repositories.append(GitHubTranslator.to_domain(raw_repo))
                except ValidationError as e:
                    logger.warning(f"Skipping repository: {e}")

            if len(data) < PAGE_SIZE:
                break
        else:
            logger.warning(f"Reached the {MAX_PAGES}-page ceiling for {self.username}; remaining repositories ignored.")

        logger.info(f"Fetched {len(repositories)} repositories for {self.username}.")
        return repositories
