from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict


class RepositoryEntity(BaseModel):
    """
    Immutable domain model representing a GitHub repository snapshot.
    Created only by the upstream host; this system only observes it.
    """
    # Enforces immutability: once created, fields cannot be modified.
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque identifier assigned by GitHub")
    name: str = Field(..., description="Name of the repository, unique per owner")
    owner: str = Field(..., description="Login name of the repository owner")
    full_name: str = Field(..., description="owner/name")
    description: Optional[str] = Field(default=None)
    stars: int = Field(0, ge=0, description="Total number of stargazers")
    forks: int = Field(0, ge=0, description="Total number of forks")
    language: Optional[str] = Field(default=None, description="Primary language")
    topics: Tuple[str, ...] = Field(default_factory=tuple)
    homepage_url: Optional[str] = Field(default=None)
    html_url: str = Field(..., description="Repository page on GitHub")
    is_fork: bool = False
    is_archived: bool = False
    created_at: Optional[datetime] = None
    updated_at: datetime = Field(..., description="Timestamp of the last update")
    pushed_at: Optional[datetime] = Field(default=None, description="Timestamp of the last push")


class UserProfile(BaseModel):
    """The authenticated portfolio owner's GitHub profile."""
    model_config = ConfigDict(frozen=True)

    id: str
    login: str
    name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    blog: Optional[str] = None
    html_url: Optional[str] = None
    public_repos: int = Field(0, ge=0)
    followers: int = Field(0, ge=0)
    following: int = Field(0, ge=0)
    created_at: Optional[datetime] = None


class DeploymentState(str, Enum):
    QUEUED = "QUEUED"
    INITIALIZING = "INITIALIZING"
    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"
    CANCELED = "CANCELED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    @property
    def is_in_progress(self) -> bool:
        return not self.is_terminal

    def can_transition_to(self, other: "DeploymentState") -> bool:
        """A deployment only moves forward; terminal states never change."""
        if self.is_terminal:
            return False
        if other is DeploymentState.CANCELED:
            return True
        return _STATE_ORDER.index(other) > _STATE_ORDER.index(self)


_TERMINAL_STATES = frozenset({DeploymentState.READY, DeploymentState.ERROR, DeploymentState.CANCELED})
_STATE_ORDER = [
    DeploymentState.QUEUED,
    DeploymentState.INITIALIZING,
    DeploymentState.BUILDING,
    DeploymentState.READY,
    DeploymentState.ERROR,
    DeploymentState.CANCELED,
]


class DeploymentTarget(str, Enum):
    PRODUCTION = "PRODUCTION"
    PREVIEW = "PREVIEW"


class DeploymentEntity(BaseModel):
    """A single Vercel deployment of a project."""
    model_config = ConfigDict(frozen=True)

    id: str
    url: str = Field(..., description="Deployment URL, always including the https:// scheme")
    state: DeploymentState
    created_at: datetime
    building_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    target: DeploymentTarget = DeploymentTarget.PREVIEW
    commit_sha: Optional[str] = None
    commit_message: Optional[str] = None
    branch: Optional[str] = None

    @property
    def build_seconds(self) -> Optional[float]:
        if self.building_at is None or self.ready_at is None:
            return None
        return (self.ready_at - self.building_at).total_seconds()


class LinkedRepository(BaseModel):
    """Repository explicitly linked to a Vercel project."""
    model_config = ConfigDict(frozen=True)

    repo: str
    owner: Optional[str] = None
    provider: str = "github"


class DeploymentProjectEntity(BaseModel):
    """
    Immutable domain model representing a Vercel project together with its
    most recent deployment.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    framework: Optional[str] = None
    latest_deployment: Optional[DeploymentEntity] = None
    linked_repository: Optional[LinkedRepository] = None
    domains: Tuple[str, ...] = Field(default_factory=tuple, description="Aliases assigned to production")


class LiveSource(str, Enum):
    PLATFORM = "platform"
    CUSTOM_DOMAIN = "custom-domain"
    PAGES = "pages"


class LiveDeployment(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    source: LiveSource
    status: DeploymentState


class Category(str, Enum):
    FULLSTACK = "fullstack"
    FRONTEND = "frontend"
    BACKEND = "backend"
    MOBILE = "mobile"
    DATA = "data"
    OTHER = "other"


class ProjectScores(BaseModel):
    model_config = ConfigDict(frozen=True)

    deployment_score: int = Field(..., ge=0, le=100)
    activity_score: int = Field(..., ge=0, le=100)
    popularity_score: int = Field(..., ge=0, le=100)


class EnhancedProject(BaseModel):
    """
    The unified project record served to the UI. One is built per repository
    on every aggregation pass and never mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    slug: str = Field(..., description="URL-safe, unique within a result set")
    name: str = Field(..., description="Raw repository name")
    display_name: str
    description: str
    tech_stack: Tuple[str, ...] = Field(default_factory=tuple)
    category: Category = Category.OTHER
    featured: bool = False
    repository: Optional[RepositoryEntity] = None
    live_deployment: Optional[LiveDeployment] = None
    deployment_status: Optional[DeploymentState] = Field(
        default=None,
        description="State of the latest deployment, exposed even when not READY",
    )
    homepage_url: Optional[str] = None
    deployment_score: int = Field(0, ge=0, le=100)
    activity_score: int = Field(0, ge=0, le=100)
    popularity_score: int = Field(0, ge=0, le=100)
    last_activity_at: datetime
    sort_order: int = 0

    @property
    def stars(self) -> int:
        return self.repository.stars if self.repository else 0

    @property
    def forks(self) -> int:
        return self.repository.forks if self.repository else 0

    @property
    def language(self) -> Optional[str]:
        return self.repository.language if self.repository else None


class DeploymentBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    successful: int = 0
    failed: int = 0
    building: int = 0
    pending: int = 0


class PortfolioStats(BaseModel):
    """Aggregate numbers derived from a collection of EnhancedProject records."""
    model_config = ConfigDict(frozen=True)

    total_projects: int = 0
    featured_projects: int = 0
    live_project_count: int = 0
    total_stars: int = 0
    total_forks: int = 0
    language_breakdown: Dict[str, int] = Field(default_factory=dict)
    category_breakdown: Dict[str, int] = Field(default_factory=dict)
    deployment_breakdown: DeploymentBreakdown = Field(default_factory=DeploymentBreakdown)
    last_activity_at: Optional[datetime] = None
    active_projects: int = 0
