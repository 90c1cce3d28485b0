import unittest
from datetime import datetime, timezone

from src.application import reconciler
from src.domain.models import (
    DeploymentEntity,
    DeploymentProjectEntity,
    DeploymentState,
    LinkedRepository,
    LiveSource,
    RepositoryEntity,
)

UPDATED_AT = datetime(2026, 5, 1, tzinfo=timezone.utc)


def _repo(name: str, owner: str = "octocat") -> RepositoryEntity:
    return RepositoryEntity(
        id=f"id-{name}",
        name=name,
        owner=owner,
        full_name=f"{owner}/{name}",
        html_url=f"https://github.com/{owner}/{name}",
        updated_at=UPDATED_AT,
    )


def _project(name, state=None, url=None, link=None, domains=()) -> DeploymentProjectEntity:
    deployment = None
    if state is not None:
        deployment = DeploymentEntity(
            id=f"dpl-{name}",
            url=url or f"https://{name}.vercel.app",
            state=state,
            created_at=UPDATED_AT,
        )
    return DeploymentProjectEntity(
        id=f"prj-{name}",
        name=name,
        latest_deployment=deployment,
        linked_repository=link,
        domains=tuple(domains),
    )


class TestMatch(unittest.TestCase):
    def test_exact_name_match_with_ready_deployment(self) -> None:
        repo = _repo("api-server")
        project = _project("api-server", DeploymentState.READY, url="https://api-server.example.com")

        [(matched_repo, matched_project)] = reconciler.match([repo], [project])
        live = reconciler.build_live_deployment(matched_project)

        self.assertIs(matched_repo, repo)
        self.assertIs(matched_project, project)
        self.assertEqual(live.url, "https://api-server.example.com")
        self.assertIs(live.status, DeploymentState.READY)

    def test_substring_match_when_no_better_tier(self) -> None:
        repo = _repo("widget")
        project = _project("widget-site", DeploymentState.READY)

        [(_, matched)] = reconciler.match([repo], [project])

        self.assertIs(matched, project)

    def test_substring_match_in_either_direction(self) -> None:
        repo = _repo("my-app-site")
        project = _project("my-app")

        self.assertIs(reconciler.find_match(repo, [project]), project)

    def test_matching_is_case_insensitive(self) -> None:
        repo = _repo("Widget")
        project = _project("widget")

        self.assertIs(reconciler.find_match(repo, [project]), project)

    def test_explicit_link_beats_exact_name(self) -> None:
        repo = _repo("blog")
        by_name = _project("blog")
        linked = _project("personal-site", link=LinkedRepository(repo="blog", owner="octocat"))

        self.assertIs(reconciler.find_match(repo, [by_name, linked]), linked)

    def test_link_to_another_owner_is_ignored(self) -> None:
        repo = _repo("blog")
        linked_elsewhere = _project("someone-elses", link=LinkedRepository(repo="blog", owner="other"))

        self.assertIsNone(reconciler.find_match(repo, [linked_elsewhere]))

    def test_exact_name_beats_earlier_substring(self) -> None:
        repo = _repo("blog")
        substring = _project("blog-v2")
        exact = _project("blog")

        self.assertIs(reconciler.find_match(repo, [substring, exact]), exact)

    def test_ambiguous_substring_takes_first_in_given_order(self) -> None:
        repo = _repo("blog")
        first = _project("my-blog-v2")
        second = _project("blog-legacy")

        self.assertIs(reconciler.find_match(repo, [first, second]), first)
        self.assertIs(reconciler.find_match(repo, [second, first]), second)

    def test_every_repository_yields_one_pair(self) -> None:
        repos = [_repo("alpha"), _repo("beta"), _repo("gamma")]
        projects = [_project("beta")]

        matches = reconciler.match(repos, projects)

        self.assertEqual([repo.name for repo, _ in matches], ["alpha", "beta", "gamma"])
        self.assertEqual([p.name if p else None for _, p in matches], [None, "beta", None])

    def test_no_projects(self) -> None:
        matches = reconciler.match([_repo("alpha")], [])

        self.assertEqual(matches, [(_repo("alpha"), None)])


class TestLiveDeployment(unittest.TestCase):
    def test_non_ready_deployment_is_not_live_but_exposes_status(self) -> None:
        project = _project("widget", DeploymentState.BUILDING)

        self.assertIsNone(reconciler.build_live_deployment(project))
        self.assertIs(reconciler.deployment_status(project), DeploymentState.BUILDING)

    def test_project_without_deployment(self) -> None:
        project = _project("widget")

        self.assertIsNone(reconciler.build_live_deployment(project))
        self.assertIsNone(reconciler.deployment_status(project))
        self.assertIsNone(reconciler.build_live_deployment(None))

    def test_platform_url_source(self) -> None:
        live = reconciler.build_live_deployment(_project("widget", DeploymentState.READY))

        self.assertEqual(live.url, "https://widget.vercel.app")
        self.assertIs(live.source, LiveSource.PLATFORM)

    def test_custom_domain_preferred(self) -> None:
        project = _project(
            "widget", DeploymentState.READY, domains=["widget.vercel.app", "widget.dev"]
        )

        live = reconciler.build_live_deployment(project)

        self.assertEqual(live.url, "https://widget.dev")
        self.assertIs(live.source, LiveSource.CUSTOM_DOMAIN)

    def test_classify_source(self) -> None:
        self.assertIs(reconciler.classify_source("https://octocat.github.io/widget"), LiveSource.PAGES)
        self.assertIs(reconciler.classify_source("https://x.vercel.app"), LiveSource.PLATFORM)
        self.assertIs(reconciler.classify_source("https://example.com"), LiveSource.CUSTOM_DOMAIN)
