from typing import Annotated, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from src.domain.exceptions import ConfigurationError

GITHUB_API_URL = "https://api.github.com"
VERCEL_API_URL = "https://api.vercel.com"


class CacheTTL(BaseModel):
    """Time-to-live, in seconds, for each kind of cached data."""
    model_config = ConfigDict(frozen=True)

    user_profile: float
    repositories: float
    deployments: float
    computed_stats: float


class Settings(BaseSettings):
    """
    Portfolio settings, read from the environment.

    Credentials keep their conventional names (`GITHUB_TOKEN`, `VERCEL_TOKEN`);
    everything else is prefixed with `PORTFOLIO_`. Blank variables fall back
    to the defaults below.
    """
    model_config = SettingsConfigDict(
        env_prefix="PORTFOLIO_",
        env_ignore_empty=True,
        str_strip_whitespace=True,
        populate_by_name=True,
        frozen=True,
    )

    # Credentials and endpoints
    github_token: Optional[str] = Field(default=None, validation_alias="GITHUB_TOKEN")
    github_username: Optional[str] = Field(default=None, validation_alias="GITHUB_USERNAME")
    github_api_url: str = Field(default=GITHUB_API_URL, validation_alias="GITHUB_API_URL")
    vercel_token: Optional[str] = Field(default=None, validation_alias="VERCEL_TOKEN")
    vercel_team_id: Optional[str] = Field(default=None, validation_alias="VERCEL_TEAM_ID")
    vercel_api_url: str = Field(default=VERCEL_API_URL, validation_alias="VERCEL_API_URL")

    # Cache lifetimes; deployment state changes often, profile data rarely.
    ttl_user_profile: float = Field(3600, gt=0)
    ttl_repositories: float = Field(1800, gt=0)
    ttl_deployments: float = Field(300, gt=0)
    ttl_computed_stats: float = Field(1800, gt=0)

    # Selection and ranking
    featured_overrides: Annotated[Tuple[str, ...], NoDecode] = Field(
        default=(), validation_alias="PORTFOLIO_FEATURED"
    )
    featured_recent_count: int = Field(6, ge=0, validation_alias="PORTFOLIO_FEATURED_RECENT")
    max_projects: Optional[int] = Field(default=None, gt=0)
    exclude_forks: bool = False
    exclude_archived: bool = False

    request_timeout: float = Field(10.0, gt=0)

    @field_validator("featured_overrides", mode="before")
    @classmethod
    def split_featured(cls, value):
        if isinstance(value, str):
            return tuple(name.strip() for name in value.split(",") if name.strip())
        return value

    @property
    def ttl(self) -> CacheTTL:
        return CacheTTL(
            user_profile=self.ttl_user_profile,
            repositories=self.ttl_repositories,
            deployments=self.ttl_deployments,
            computed_stats=self.ttl_computed_stats,
        )

    @property
    def has_github_credentials(self) -> bool:
        return bool(self.github_token and self.github_username)

    @property
    def has_vercel_credentials(self) -> bool:
        return bool(self.vercel_token)

    @classmethod
    def load(cls) -> "Settings":
        """
        Reads settings from the process environment.

        Raises:
            ConfigurationError: If a variable is set to a malformed value.
        """
        try:
            return cls()
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid portfolio configuration: {e}") from e
