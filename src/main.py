import asyncio
import json
import os
import sys
import logging
from typing import Optional

from dotenv import load_dotenv

from src.config import Settings
from src.domain.exceptions import ConfigurationError
from src.application.portfolio_service import PortfolioService

logger = logging.getLogger(__name__)

def configure_logging(level_name: Optional[str]) -> None:
    """Logs to stderr so stdout carries only the JSON output."""
    level = logging.getLevelName((level_name or "INFO").strip().upper())
    logging.basicConfig(
        level=level if isinstance(level, int) else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )
    if not isinstance(level, int):
        logger.warning(f"Unknown LOG_LEVEL {level_name!r}, using INFO.")

async def main():
    # Load environment variables from .env file before anything reads them
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL"))

    try:
        settings = Settings.load()
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)

    if not settings.has_github_credentials:
        logger.warning("GITHUB_TOKEN or GITHUB_USERNAME is not set; only fallback projects will be served.")
    if not settings.has_vercel_credentials:
        logger.warning("VERCEL_TOKEN is not set; live deployment links will be omitted.")

    service = PortfolioService(settings=settings)

    projects = await service.get_enhanced_projects()
    stats = await service.get_portfolio_stats()

    print(json.dumps(
        {
            "projects": [project.model_dump(mode="json", exclude={"repository"}) for project in projects],
            "stats": stats.model_dump(mode="json"),
        },
        indent=2,
    ))

if __name__ == "__main__":
    asyncio.run(main())
