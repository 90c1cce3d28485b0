from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from src.domain.exceptions import ValidationError
from src.domain.models import (
    DeploymentEntity,
    DeploymentProjectEntity,
    DeploymentState,
    DeploymentTarget,
    LinkedRepository,
    RepositoryEntity,
    UserProfile,
)


def _parse_iso(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


def _parse_epoch_ms(raw: Any) -> Optional[datetime]:
    if raw is None:
        return None
    return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)


def _with_scheme(url: str) -> str:
    return url if url.startswith(("http://", "https://")) else f"https://{url}"


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON into domain entities.
    """

    @staticmethod
    def to_domain(raw_repo: Dict[str, Any]) -> RepositoryEntity:
        """
        Transforms one item of `GET /users/{username}/repos` into a RepositoryEntity.

        Args:
            raw_repo (Dict[str, Any]): The raw JSON object from GitHub's REST response.

        Returns:
            RepositoryEntity: The domain model instance representing the repository.

        Raises:
            ValidationError: If the object lacks required fields or has the wrong shape.
        """
        if not isinstance(raw_repo, dict):
            raise ValidationError(f"Expected a repository object, got {type(raw_repo).__name__}.", source="github")

        try:
            owner_data = raw_repo.get('owner') or {}
            updated_at = _parse_iso(raw_repo.get('updated_at'))
            if updated_at is None:
                raise ValueError("updated_at is required to build RepositoryEntity.")
            name = raw_repo['name']
            owner = owner_data.get('login', '')

            return RepositoryEntity(
                id=str(raw_repo['id']),
                name=name,
                owner=owner,
                full_name=raw_repo.get('full_name') or f"{owner}/{name}",
                description=raw_repo.get('description') or None,
                stars=raw_repo.get('stargazers_count') or 0,
                forks=raw_repo.get('forks_count') or 0,
                language=raw_repo.get('language'),
                topics=tuple(raw_repo.get('topics') or ()),
                homepage_url=raw_repo.get('homepage') or None,
                html_url=raw_repo.get('html_url') or f"https://github.com/{owner}/{name}",
                is_fork=bool(raw_repo.get('fork', False)),
                is_archived=bool(raw_repo.get('archived', False)),
                created_at=_parse_iso(raw_repo.get('created_at')),
                updated_at=updated_at,
                pushed_at=_parse_iso(raw_repo.get('pushed_at')),
            )
        except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as e:
            raise ValidationError(f"Malformed repository payload: {e}", source="github") from e

    @staticmethod
    def to_user(raw_user: Dict[str, Any]) -> UserProfile:
        if not isinstance(raw_user, dict):
            raise ValidationError(f"Expected a user object, got {type(raw_user).__name__}.", source="github")
        try:
            return UserProfile(
                id=str(raw_user['id']),
                login=raw_user['login'],
                name=raw_user.get('name'),
                bio=raw_user.get('bio'),
                location=raw_user.get('location'),
                blog=raw_user.get('blog') or None,
                html_url=raw_user.get('html_url'),
                public_repos=raw_user.get('public_repos') or 0,
                followers=raw_user.get('followers') or 0,
                following=raw_user.get('following') or 0,
                created_at=_parse_iso(raw_user.get('created_at')),
            )
        except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as e:
            raise ValidationError(f"Malformed user payload: {e}", source="github") from e


class VercelTranslator:
    """
    Anti-corruption layer for the Vercel REST API (`/v9/projects`, `/v6/deployments`).
    """

    @staticmethod
    def to_deployment(raw: Dict[str, Any]) -> DeploymentEntity:
        if not isinstance(raw, dict):
            raise ValidationError(f"Expected a deployment object, got {type(raw).__name__}.", source="vercel")
        try:
            # v6 list items carry `state`, project payloads sometimes only `readyState`.
            state = raw.get('state') or raw.get('readyState')
            created = raw.get('created') if raw.get('created') is not None else raw.get('createdAt')
            target = (raw.get('target') or '').lower()
            meta = raw.get('meta') or {}

            return DeploymentEntity(
                id=raw.get('uid') or raw['id'],
                url=_with_scheme(raw['url']),
                state=DeploymentState(state),
                created_at=_parse_epoch_ms(created),
                building_at=_parse_epoch_ms(raw.get('buildingAt')),
                ready_at=_parse_epoch_ms(raw.get('readyAt') or raw.get('ready')),
                target=DeploymentTarget.PRODUCTION if target == 'production' else DeploymentTarget.PREVIEW,
                commit_sha=meta.get('githubCommitSha'),
                commit_message=meta.get('githubCommitMessage'),
                branch=meta.get('githubCommitRef'),
            )
        except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as e:
            raise ValidationError(f"Malformed deployment payload: {e}", source="vercel") from e

    @staticmethod
    def to_domain(raw_project: Dict[str, Any], latest_deployment: Optional[DeploymentEntity] = None) -> DeploymentProjectEntity:
        """
        Transforms one item of `GET /v9/projects` into a DeploymentProjectEntity.

        The latest deployment is taken from `latest_deployment` when given,
        otherwise from the project's embedded `latestDeployments` list.
        """
        if not isinstance(raw_project, dict):
            raise ValidationError(f"Expected a project object, got {type(raw_project).__name__}.", source="vercel")
        try:
            if latest_deployment is None:
                embedded = raw_project.get('latestDeployments') or []
                if embedded:
                    latest_deployment = VercelTranslator.to_deployment(embedded[0])

            link = raw_project.get('link') or {}
            linked_repository = None
            if link.get('repo'):
                linked_repository = LinkedRepository(
                    repo=link['repo'],
                    owner=link.get('org') or link.get('owner'),
                    provider=link.get('type') or 'github',
                )

            domains = []
            for alias in raw_project.get('alias') or []:
                domain = alias.get('domain') if isinstance(alias, dict) else alias
                if domain and domain not in domains:
                    domains.append(domain)
            production = (raw_project.get('targets') or {}).get('production') or {}
            for domain in production.get('alias') or []:
                if domain and domain not in domains:
                    domains.append(domain)

            return DeploymentProjectEntity(
                id=raw_project['id'],
                name=raw_project['name'],
                framework=raw_project.get('framework'),
                latest_deployment=latest_deployment,
                linked_repository=linked_repository,
                domains=tuple(domains),
            )
        except (KeyError, TypeError, ValueError, AttributeError, PydanticValidationError) as e:
            raise ValidationError(f"Malformed project payload: {e}", source="vercel") from e
