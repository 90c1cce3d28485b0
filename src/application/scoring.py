import re
from datetime import datetime, timedelta
from typing import Collection, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.domain.models import (
    Category,
    DeploymentProjectEntity,
    EnhancedProject,
    ProjectScores,
    RepositoryEntity,
)

MAX_SCORE = 100

DEPLOYMENT_BASELINE = 60
COMPLETENESS_BONUS = 10
RECENT_UPDATE_BONUS = 10
RECENT_UPDATE_WINDOW = timedelta(days=30)
STAR_BONUS_PER_STAR = 5
STAR_BONUS_CAP = 20

POPULARITY_PER_STAR = 5
POPULARITY_PER_FORK = 2

ACTIVITY_HORIZON = timedelta(days=365)

MAX_TECH_STACK = 6
DEFAULT_DESCRIPTION = "A project built with modern web technologies"

CATEGORY_TOPICS: Sequence[Tuple[Category, Set[str]]] = (
    (Category.MOBILE, {"mobile", "react-native", "flutter", "ios", "android"}),
    (Category.DATA, {"data", "machine-learning", "ml", "ai", "analytics", "visualization", "data-science"}),
    (Category.FULLSTACK, {"fullstack", "full-stack", "webapp", "web-app"}),
    (Category.BACKEND, {"backend", "api", "server", "express", "django", "flask", "fastapi"}),
    (Category.FRONTEND, {"frontend", "react", "vue", "angular", "nextjs", "ui", "website"}),
)

CATEGORY_LANGUAGES: Dict[str, Category] = {
    "TypeScript": Category.FULLSTACK,
    "JavaScript": Category.FRONTEND,
    "HTML": Category.FRONTEND,
    "CSS": Category.FRONTEND,
    "Vue": Category.FRONTEND,
    "Python": Category.BACKEND,
    "Go": Category.BACKEND,
    "Java": Category.BACKEND,
    "Rust": Category.BACKEND,
    "Kotlin": Category.MOBILE,
    "Swift": Category.MOBILE,
    "Dart": Category.MOBILE,
    "Jupyter Notebook": Category.DATA,
    "R": Category.DATA,
}

# Keyword hints in the name or description, checked last.
CATEGORY_KEYWORDS: Sequence[Tuple[Category, Tuple[str, ...]]] = (
    (Category.MOBILE, ("mobile", "react native")),
    (Category.DATA, ("data", "analysis", "visualization")),
    (Category.BACKEND, ("api", "backend", "server")),
    (Category.FRONTEND, ("portfolio", "website", "frontend")),
)

TECH_TOPICS: Dict[str, str] = {
    "nextjs": "Next.js",
    "react": "React",
    "vue": "Vue.js",
    "angular": "Angular",
    "node": "Node.js",
    "nodejs": "Node.js",
    "express": "Express",
    "django": "Django",
    "flask": "Flask",
    "fastapi": "FastAPI",
    "mongodb": "MongoDB",
    "postgresql": "PostgreSQL",
    "tailwindcss": "Tailwind CSS",
    "threejs": "Three.js",
}


def _clamp(value: float) -> int:
    return max(0, min(MAX_SCORE, int(round(value))))


def last_activity(repository: RepositoryEntity, project: Optional[DeploymentProjectEntity] = None) -> datetime:
    """The most recent of the repository's update, push and latest deployment times."""
    moments = [repository.updated_at]
    if repository.pushed_at is not None:
        moments.append(repository.pushed_at)
    if project is not None and project.latest_deployment is not None:
        moments.append(project.latest_deployment.created_at)
    return max(moments)


def deployment_score(repository: RepositoryEntity, now: datetime) -> int:
    """Rewards completeness and recency over raw popularity."""
    score = DEPLOYMENT_BASELINE
    if repository.description:
        score += COMPLETENESS_BONUS
    if repository.topics:
        score += COMPLETENESS_BONUS
    if now - repository.updated_at < RECENT_UPDATE_WINDOW:
        score += RECENT_UPDATE_BONUS
    score += min(repository.stars * STAR_BONUS_PER_STAR, STAR_BONUS_CAP)
    return _clamp(score)


def popularity_score(repository: RepositoryEntity) -> int:
    # Stars weigh more than forks: they reflect outside interest more directly.
    return _clamp(repository.stars * POPULARITY_PER_STAR + repository.forks * POPULARITY_PER_FORK)


def activity_score(last_activity_at: datetime, now: datetime) -> int:
    """Decays linearly from 100 for activity right now to 0 at the one-year horizon."""
    elapsed = (now - last_activity_at) / ACTIVITY_HORIZON
    return _clamp(MAX_SCORE * (1 - elapsed))


def score(
    repository: RepositoryEntity,
    project: Optional[DeploymentProjectEntity] = None,
    *,
    now: datetime,
) -> ProjectScores:
    return ProjectScores(
        deployment_score=deployment_score(repository, now),
        activity_score=activity_score(last_activity(repository, project), now),
        popularity_score=popularity_score(repository),
    )


def recent_repository_ids(repositories: Iterable[RepositoryEntity], count: int) -> Set[str]:
    """Ids of the `count` most recently updated repositories."""
    ranked = sorted(repositories, key=lambda repo: (repo.updated_at, repo.name), reverse=True)
    return {repo.id for repo in ranked[:count]}


def is_featured(
    repository: RepositoryEntity,
    overrides: Collection[str] = (),
    recent_ids: Collection[str] = (),
) -> bool:
    overridden = {name.lower() for name in overrides}
    return (
        repository.name.lower() in overridden
        or repository.stars > 0
        or repository.forks > 0
        or repository.id in recent_ids
    )


def sort_key(project: EnhancedProject):
    """Featured first, then deployment score descending, then name ascending."""
    return (not project.featured, -project.deployment_score, project.name.lower(), project.name)


def rank(projects: Iterable[EnhancedProject]) -> List[EnhancedProject]:
    """Sorts projects and stamps each copy with its position."""
    ordered = sorted(projects, key=sort_key)
    return [project.model_copy(update={"sort_order": index}) for index, project in enumerate(ordered)]


def categorize(repository: RepositoryEntity) -> Category:
    topics = {topic.lower() for topic in repository.topics}
    for category, category_topics in CATEGORY_TOPICS:
        if topics & category_topics:
            return category

    if repository.language in CATEGORY_LANGUAGES:
        return CATEGORY_LANGUAGES[repository.language]

    text = f"{repository.name} {repository.description or ''}".lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category

    return Category.OTHER


def extract_tech_stack(repository: RepositoryEntity) -> Tuple[str, ...]:
    stack: List[str] = []
    if repository.language:
        stack.append(repository.language)
    for topic in repository.topics:
        tech = TECH_TOPICS.get(topic.lower())
        if tech and tech not in stack:
            stack.append(tech)
    return tuple(stack[:MAX_TECH_STACK])


def display_name(name: str) -> str:
    """'my-cool_app' -> 'My Cool App'"""
    words = re.sub(r"[-_]+", " ", name).split()
    return " ".join(word[:1].upper() + word[1:] for word in words) or name


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "project"


def unique_slugs(names: Sequence[str]) -> List[str]:
    """Slugs for `names`, suffixed with -2, -3, ... where they would collide."""
    seen: Set[str] = set()
    slugs = []
    for name in names:
        base = slugify(name)
        slug, suffix = base, 2
        while slug in seen:
            slug = f"{base}-{suffix}"
            suffix += 1
        seen.add(slug)
        slugs.append(slug)
    return slugs
