import unittest
from datetime import datetime, timedelta, timezone

from src.application import scoring
from src.domain.models import (
    Category,
    DeploymentEntity,
    DeploymentProjectEntity,
    DeploymentState,
    EnhancedProject,
    RepositoryEntity,
)

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


def _repo(name="widget", days_ago=10, **fields) -> RepositoryEntity:
    return RepositoryEntity(
        id=fields.pop("id", f"id-{name}"),
        name=name,
        owner="octocat",
        full_name=f"octocat/{name}",
        html_url=f"https://github.com/octocat/{name}",
        updated_at=NOW - timedelta(days=days_ago),
        **fields,
    )


def _enhanced(name, featured, deployment_score) -> EnhancedProject:
    return EnhancedProject(
        id=name,
        slug=name,
        name=name,
        display_name=name,
        description="",
        featured=featured,
        deployment_score=deployment_score,
        last_activity_at=NOW,
    )


class TestScores(unittest.TestCase):
    def test_complete_recent_popular_repository_is_capped(self) -> None:
        repo = _repo(stars=5, description="x", topics=("react",), days_ago=10)

        scores = scoring.score(repo, None, now=NOW)

        # 60 + 10 + 10 + 10 + 20 = 110, capped.
        self.assertEqual(scores.deployment_score, 100)
        self.assertTrue(scoring.is_featured(repo))

    def test_deployment_score_components(self) -> None:
        self.assertEqual(scoring.deployment_score(_repo(days_ago=90), NOW), 60)
        self.assertEqual(scoring.deployment_score(_repo(days_ago=5), NOW), 70)
        self.assertEqual(scoring.deployment_score(_repo(days_ago=90, description="d"), NOW), 70)
        self.assertEqual(scoring.deployment_score(_repo(days_ago=90, topics=("api",)), NOW), 70)
        self.assertEqual(scoring.deployment_score(_repo(days_ago=90, stars=1), NOW), 65)
        self.assertEqual(scoring.deployment_score(_repo(days_ago=90, stars=50), NOW), 80)

    def test_popularity_weights_stars_over_forks(self) -> None:
        self.assertGreater(
            scoring.popularity_score(_repo(stars=3)),
            scoring.popularity_score(_repo(forks=3)),
        )
        self.assertEqual(scoring.popularity_score(_repo()), 0)
        self.assertEqual(scoring.popularity_score(_repo(stars=1000, forks=1000)), 100)

    def test_activity_decays_to_zero_after_a_year(self) -> None:
        self.assertEqual(scoring.activity_score(NOW, NOW), 100)
        self.assertEqual(scoring.activity_score(NOW - timedelta(days=400), NOW), 0)
        half = scoring.activity_score(NOW - timedelta(days=182), NOW)
        self.assertTrue(45 <= half <= 55)

    def test_future_activity_is_clamped(self) -> None:
        self.assertEqual(scoring.activity_score(NOW + timedelta(days=3), NOW), 100)

    def test_scores_stay_within_bounds(self) -> None:
        cases = [
            _repo(days_ago=0),
            _repo(days_ago=10_000),
            _repo(days_ago=-30),
            _repo(stars=10**6, forks=10**6, description="d", topics=("a", "b"), days_ago=1),
        ]
        for repo in cases:
            scores = scoring.score(repo, None, now=NOW)
            for value in (scores.deployment_score, scores.activity_score, scores.popularity_score):
                self.assertGreaterEqual(value, 0)
                self.assertLessEqual(value, 100)

    def test_latest_deployment_counts_as_activity(self) -> None:
        repo = _repo(days_ago=200)
        project = DeploymentProjectEntity(
            id="p",
            name="widget",
            latest_deployment=DeploymentEntity(
                id="d", url="https://widget.vercel.app", state=DeploymentState.READY,
                created_at=NOW - timedelta(days=1),
            ),
        )

        self.assertEqual(scoring.last_activity(repo, project), NOW - timedelta(days=1))
        self.assertGreater(
            scoring.score(repo, project, now=NOW).activity_score,
            scoring.score(repo, None, now=NOW).activity_score,
        )


class TestFeaturedAndRanking(unittest.TestCase):
    def test_featured_signals(self) -> None:
        quiet = _repo(name="quiet")

        self.assertFalse(scoring.is_featured(quiet))
        self.assertTrue(scoring.is_featured(_repo(forks=1)))
        self.assertTrue(scoring.is_featured(quiet, overrides=["QUIET"]))
        self.assertTrue(scoring.is_featured(quiet, recent_ids={quiet.id}))

    def test_recent_repository_ids(self) -> None:
        repos = [_repo(name=f"r{i}", days_ago=i) for i in range(10)]

        recent = scoring.recent_repository_ids(repos, 3)

        self.assertEqual(recent, {"id-r0", "id-r1", "id-r2"})

    def test_featured_first_then_score_then_name(self) -> None:
        projects = [
            _enhanced("zeta", False, 100),
            _enhanced("beta", True, 70),
            _enhanced("alpha", True, 70),
            _enhanced("gamma", True, 90),
        ]

        ranked = scoring.rank(projects)

        self.assertEqual([p.name for p in ranked], ["gamma", "alpha", "beta", "zeta"])
        self.assertEqual([p.sort_order for p in ranked], [0, 1, 2, 3])

    def test_rank_does_not_mutate_input(self) -> None:
        projects = [_enhanced("b", False, 60), _enhanced("a", False, 60)]

        scoring.rank(projects)

        self.assertEqual([p.sort_order for p in projects], [0, 0])


class TestDerivations(unittest.TestCase):
    def test_categorize_prefers_topics(self) -> None:
        self.assertIs(scoring.categorize(_repo(topics=("react",), language="Python")), Category.FRONTEND)
        self.assertIs(scoring.categorize(_repo(topics=("react-native",))), Category.MOBILE)
        self.assertIs(scoring.categorize(_repo(language="Python")), Category.BACKEND)
        self.assertIs(scoring.categorize(_repo(name="sales-data-explorer")), Category.DATA)
        self.assertIs(scoring.categorize(_repo(name="misc")), Category.OTHER)

    def test_tech_stack_is_deduplicated_and_bounded(self) -> None:
        repo = _repo(
            language="TypeScript",
            topics=("react", "nextjs", "React", "node", "mongodb", "postgresql", "express", "unknown"),
        )

        stack = scoring.extract_tech_stack(repo)

        self.assertEqual(stack, ("TypeScript", "React", "Next.js", "Node.js", "MongoDB", "PostgreSQL"))

    def test_display_name(self) -> None:
        self.assertEqual(scoring.display_name("my-cool_app"), "My Cool App")
        self.assertEqual(scoring.display_name("API"), "API")

    def test_unique_slugs(self) -> None:
        self.assertEqual(
            scoring.unique_slugs(["My App", "my-app", "Other.JS", "???"]),
            ["my-app", "my-app-2", "other-js", "project"],
        )
