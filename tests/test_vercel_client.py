import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from src.domain.exceptions import AuthError, ValidationError
from src.domain.models import DeploymentState
from src.infrastructure.vercel_client import VercelClient


def _response(status, payload=None, headers=None):
    resp = AsyncMock()
    resp.status = status
    resp.headers = headers or {}
    resp.json = AsyncMock(return_value=payload)
    resp.__aenter__ = AsyncMock(return_value=resp)
    resp.__aexit__ = AsyncMock(return_value=False)
    return resp


PROJECTS_PAYLOAD = {
    "projects": [
        {
            "id": "prj_widget",
            "name": "widget-site",
            "link": {"type": "github", "repo": "widget", "org": "octocat"},
            "latestDeployments": [{
                "uid": "dpl_1",
                "url": "widget-site.vercel.app",
                "state": "READY",
                "created": 1704164645000,
                "target": "production",
            }],
        },
        {"id": "prj_blog", "name": "blog"},
    ],
    "pagination": {"count": 2, "next": None},
}

BLOG_DEPLOYMENTS = {
    "deployments": [{
        "uid": "dpl_2",
        "url": "blog-abc.vercel.app",
        "state": "BUILDING",
        "created": 1704164645000,
    }],
}


class TestVercelClient(unittest.IsolatedAsyncioTestCase):
    def _session(self, routes):
        def fake_get(url, params=None, headers=None, timeout=None):
            for suffix, response in routes.items():
                if url.endswith(suffix):
                    return response
            raise AssertionError(f"Unexpected request to {url}")

        session = AsyncMock()
        session.get = MagicMock(side_effect=fake_get)
        return session

    async def test_fetches_projects_and_missing_deployments(self) -> None:
        client = VercelClient(token="t")
        session = self._session({
            "/v9/projects": _response(200, PROJECTS_PAYLOAD),
            "/v6/deployments": _response(200, BLOG_DEPLOYMENTS),
        })

        projects = await client.fetch_deployment_projects(session)

        self.assertEqual([p.name for p in projects], ["widget-site", "blog"])
        widget, blog = projects
        self.assertEqual(widget.latest_deployment.url, "https://widget-site.vercel.app")
        self.assertEqual(widget.linked_repository.repo, "widget")
        self.assertIs(blog.latest_deployment.state, DeploymentState.BUILDING)
        # Only the project without embedded deployments needs a lookup.
        self.assertEqual(session.get.call_count, 2)
        lookup_params = session.get.call_args_list[1].kwargs["params"]
        self.assertEqual(lookup_params, {"projectId": "prj_blog", "limit": 1})

    async def test_team_id_is_sent_with_every_request(self) -> None:
        client = VercelClient(token="t", team_id="team_42")
        session = self._session({
            "/v9/projects": _response(200, PROJECTS_PAYLOAD),
            "/v6/deployments": _response(200, {"deployments": []}),
        })

        projects = await client.fetch_deployment_projects(session)

        self.assertIsNone(projects[1].latest_deployment)
        for call in session.get.call_args_list:
            self.assertEqual(call.kwargs["params"]["teamId"], "team_42")

    async def test_follows_pagination(self) -> None:
        client = VercelClient(token="t")
        first = {"projects": [{"id": "p1", "name": "one", "latestDeployments": []}], "pagination": {"next": 111}}
        second = {"projects": [{"id": "p2", "name": "two"}], "pagination": {"next": None}}
        session = AsyncMock()
        session.get = MagicMock(side_effect=[
            _response(200, first),
            _response(200, second),
            _response(200, {"deployments": []}),
            _response(200, {"deployments": []}),
        ])

        projects = await client.fetch_deployment_projects(session)

        self.assertEqual([p.name for p in projects], ["one", "two"])
        self.assertEqual(session.get.call_args_list[1].kwargs["params"]["until"], 111)

    async def test_malformed_project_is_skipped(self) -> None:
        client = VercelClient(token="t")
        payload = {"projects": [{"id": "p1", "name": "one", "latestDeployments": [{"uid": "d"}]}]}
        session = self._session({"/v9/projects": _response(200, payload)})

        projects = await client.fetch_deployment_projects(session)

        self.assertEqual(projects, [])

    async def test_bad_envelope_raises_validation_error(self) -> None:
        client = VercelClient(token="t")
        session = self._session({"/v9/projects": _response(200, ["not", "an", "envelope"])})

        with self.assertRaises(ValidationError):
            await client.fetch_deployment_projects(session)

    async def test_forbidden_raises_auth_error(self) -> None:
        client = VercelClient(token="expired")
        session = self._session({"/v9/projects": _response(403, {"error": {"code": "forbidden"}})})

        with self.assertRaises(AuthError):
            await client.fetch_deployment_projects(session)

    async def test_failed_lookup_cancels_remaining_lookups(self) -> None:
        client = VercelClient(token="t")
        payload = {"projects": [{"id": "a", "name": "a"}, {"id": "b", "name": "b"}]}
        session = self._session({"/v9/projects": _response(200, payload)})
        finished, cancelled = [], []

        async def fake_lookup(session, project_id):
            if project_id == "a":
                raise AuthError("Token revoked", source="vercel", status=401)
            try:
                await asyncio.sleep(0.2)
            except asyncio.CancelledError:
                cancelled.append(project_id)
                raise
            finished.append(project_id)
            return None

        with patch.object(client, "fetch_latest_deployment", side_effect=fake_lookup):
            with self.assertRaises(AuthError):
                await client.fetch_deployment_projects(session)

        self.assertEqual(cancelled, ["b"])
        await asyncio.sleep(0.3)
        self.assertEqual(finished, [])
