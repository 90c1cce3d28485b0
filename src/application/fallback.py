"""Static project set served when live aggregation is impossible."""
from datetime import datetime, timezone
from typing import List

from src.application import scoring
from src.domain.models import Category, EnhancedProject

FALLBACK_UPDATED_AT = datetime(2025, 1, 1, tzinfo=timezone.utc)

_FALLBACK_PROJECTS = (
    {
        "name": "portfolio-3d",
        "description": "Immersive portfolio with Three.js animations and WebGL effects",
        "tech_stack": ("TypeScript", "React", "Three.js", "Framer Motion"),
        "category": Category.FRONTEND,
        "featured": True,
        "deployment_score": 98,
    },
    {
        "name": "healthcare-dashboard",
        "description": "Real-time patient monitoring with predictive analytics",
        "tech_stack": ("TypeScript", "React", "Flask", "PostgreSQL"),
        "category": Category.FULLSTACK,
        "featured": True,
        "deployment_score": 95,
    },
    {
        "name": "ecommerce-suite",
        "description": "Full-stack platform with recommendations and payment processing",
        "tech_stack": ("TypeScript", "Next.js", "Node.js", "MongoDB"),
        "category": Category.FULLSTACK,
        "featured": True,
        "deployment_score": 92,
    },
    {
        "name": "ml-platform",
        "description": "Deploy and monitor machine learning models with automated pipelines",
        "tech_stack": ("Python", "React"),
        "category": Category.DATA,
        "featured": False,
        "deployment_score": 91,
    },
    {
        "name": "weather-dashboard",
        "description": "Weather app with location-based forecasts and interactive maps",
        "tech_stack": ("JavaScript", "React"),
        "category": Category.FRONTEND,
        "featured": False,
        "deployment_score": 84,
    },
)


def fallback_projects() -> List[EnhancedProject]:
    """Returns the static fallback collection, ranked like live data. Never empty."""
    projects = [
        EnhancedProject(
            id=f"fallback-{entry['name']}",
            slug=scoring.slugify(entry["name"]),
            name=entry["name"],
            display_name=scoring.display_name(entry["name"]),
            description=entry["description"],
            tech_stack=entry["tech_stack"],
            category=entry["category"],
            featured=entry["featured"],
            deployment_score=entry["deployment_score"],
            last_activity_at=FALLBACK_UPDATED_AT,
        )
        for entry in _FALLBACK_PROJECTS
    ]
    return scoring.rank(projects)
