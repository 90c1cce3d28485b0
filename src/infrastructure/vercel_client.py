import aiohttp
import asyncio
import logging
from typing import Any, Dict, List, Optional

from src.config import VERCEL_API_URL
from src.domain.exceptions import ValidationError
from src.domain.models import DeploymentEntity, DeploymentProjectEntity
from src.infrastructure.acl import VercelTranslator
from src.infrastructure.http_client import REQUEST_TIMEOUT_SECONDS, RestClient

logger = logging.getLogger(__name__)

PROJECTS_PAGE_SIZE = 100
MAX_PROJECT_PAGES = 5
# Limit concurrent deployment lookups to avoid overwhelming the API.
MAX_CONCURRENT_LOOKUPS = 5


class VercelClient(RestClient):
    """
    Client for the Vercel REST API.
    Fetches projects and the latest deployment of each one.
    """

    source = "vercel"

    def __init__(
        self,
        token: str,
        team_id: Optional[str] = None,
        base_url: str = VERCEL_API_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        super().__init__(token=token, base_url=base_url, timeout=timeout)
        self.team_id = team_id

    def _params(self, **params: Any) -> Dict[str, Any]:
        if self.team_id:
            params["teamId"] = self.team_id
        return params

    async def fetch_latest_deployment(
        self, session: aiohttp.ClientSession, project_id: str
    ) -> Optional[DeploymentEntity]:
        data = await self.get_json(session, "/v6/deployments", params=self._params(projectId=project_id, limit=1))
        if not isinstance(data, dict) or not isinstance(data.get("deployments", []), list):
            raise ValidationError("Expected a deployments envelope.", source=self.source)
        deployments = data.get("deployments") or []
        return VercelTranslator.to_deployment(deployments[0]) if deployments else None

    async def _fetch_raw_projects(self, session: aiohttp.ClientSession) -> List[Dict[str, Any]]:
        raw_projects: List[Dict[str, Any]] = []
        until = None

        for _ in range(MAX_PROJECT_PAGES):
            params = self._params(limit=PROJECTS_PAGE_SIZE)
            if until is not None:
                params["until"] = until
            data = await self.get_json(session, "/v9/projects", params=params)

            if not isinstance(data, dict) or not isinstance(data.get("projects", []), list):
                raise ValidationError("Expected a projects envelope.", source=self.source)
            raw_projects.extend(data.get("projects") or [])

            until = (data.get("pagination") or {}).get("next")
            if until is None:
                break

        return raw_projects

    async def fetch_deployment_projects(self, session: aiohttp.ClientSession) -> List[DeploymentProjectEntity]:
        """
        Fetches all projects together with their latest deployment.

        Projects whose payload does not embed `latestDeployments` get one
        extra lookup each, run concurrently. Malformed projects are logged and
        skipped; any other failure of a lookup cancels the remaining lookups
        and fails the whole call.
        """
        raw_projects = await self._fetch_raw_projects(session)
        semaphore = asyncio.Semaphore(MAX_CONCURRENT_LOOKUPS)

        async def resolve(raw_project: Dict[str, Any]) -> Optional[DeploymentProjectEntity]:
            try:
                latest = None
                if isinstance(raw_project, dict) and not raw_project.get("latestDeployments") and raw_project.get("id"):
                    async with semaphore:
                        latest = await self.fetch_latest_deployment(session, raw_project["id"])
                return VercelTranslator.to_domain(raw_project, latest_deployment=latest)
            except ValidationError as e:
                logger.warning(f"Skipping project: {e}")
                return None

        tasks = [asyncio.ensure_future(resolve(raw)) for raw in raw_projects]
        try:
            resolved = await asyncio.gather(*tasks)
        finally:
            # A failed lookup must not leave its siblings running against the session.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        projects = [project for project in resolved if project is not None]

        logger.info(f"Fetched {len(projects)} Vercel projects.")
        return projects
