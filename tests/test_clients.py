"""Tests for the Asana and GitLab REST clients against a mock transport."""

import dataclasses
import json

import httpx
import pytest

from app.services.asana import AsanaAPIError, AsanaClient
from app.services.gitlab import GitLabAPIError, GitLabClient


class Recorder:
    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        status, payload = self.responses.get(key, (404, {"errors": [{"message": "nope"}]}))
        return httpx.Response(status, json=payload)


@pytest.mark.asyncio
async def test_asana_search_scopes_to_project(cfg):
    recorder = Recorder(
        {("GET", "/api/1.0/workspaces/ws-1/tasks/search"): (200, {"data": [{"gid": "1", "name": "[PROJ-1] A"}]})}
    )
    client = AsanaClient(cfg, transport=httpx.MockTransport(recorder))

    tasks = await client.search_tasks("[PROJ-1]")

    assert tasks == [{"gid": "1", "name": "[PROJ-1] A"}]
    request = recorder.requests[0]
    assert request.url.params["text"] == "[PROJ-1]"
    assert request.url.params["projects.all"] == "proj-1"
    assert request.headers["Authorization"].startswith("Bearer")


@pytest.mark.asyncio
async def test_asana_writes_wrap_payload_in_data(cfg):
    recorder = Recorder(
        {
            ("PUT", "/api/1.0/projects/proj-1"): (200, {"data": {"gid": "proj-1"}}),
            ("POST", "/api/1.0/tasks/9/stories"): (201, {"data": {"gid": "s1"}}),
            ("POST", "/api/1.0/webhooks"): (201, {"data": {"gid": "w1"}}),
        }
    )
    client = AsanaClient(cfg, transport=httpx.MockTransport(recorder))

    await client.update_project_notes("[currentTaskId: 3]")
    await client.add_comment("9", "<body>x</body>")
    hook = await client.create_webhook("https://bridge.example/webhooks/asana")

    bodies = [json.loads(r.content) for r in recorder.requests]
    assert bodies[0] == {"data": {"notes": "[currentTaskId: 3]"}}
    assert bodies[1] == {"data": {"html_text": "<body>x</body>"}}
    assert bodies[2]["data"]["filters"] == [{"action": "added", "resource_type": "task"}]
    assert hook == {"gid": "w1"}


@pytest.mark.asyncio
async def test_asana_error_status_raises(cfg):
    client = AsanaClient(cfg, transport=httpx.MockTransport(Recorder({})))
    with pytest.raises(AsanaAPIError) as info:
        await client.get_task("missing")
    assert info.value.status_code == 404


@pytest.mark.asyncio
async def test_gitlab_mr_commits_and_commit(cfg):
    recorder = Recorder(
        {
            ("GET", "/api/v4/projects/42/merge_requests/5/commits"): (200, [{"id": "c1", "title": "[PROJ-1] x"}]),
            ("GET", "/api/v4/projects/42/repository/commits/abc"): (200, {"id": "abc", "title": "Merge"}),
        }
    )
    client = GitLabClient(cfg, transport=httpx.MockTransport(recorder))

    assert await client.merge_request_commits(42, 5) == [{"id": "c1", "title": "[PROJ-1] x"}]
    assert (await client.get_commit(42, "abc"))["title"] == "Merge"
    assert "PRIVATE-TOKEN" in recorder.requests[0].headers


@pytest.mark.asyncio
async def test_gitlab_error_status_raises(cfg):
    client = GitLabClient(cfg, transport=httpx.MockTransport(Recorder({})))
    with pytest.raises(GitLabAPIError):
        await client.get_commit(42, "nope")


@pytest.mark.asyncio
async def test_clients_use_timeout_from_their_config(cfg):
    cfg = dataclasses.replace(cfg, http_timeout=3.5)
    recorder = Recorder(
        {
            ("GET", "/api/1.0/tasks/1"): (200, {"data": {"gid": "1"}}),
            ("GET", "/api/v4/projects/42/repository/commits/abc"): (200, {"id": "abc"}),
        }
    )
    transport = httpx.MockTransport(recorder)

    await AsanaClient(cfg, transport=transport).get_task("1")
    await GitLabClient(cfg, transport=transport).get_commit(42, "abc")

    assert [r.extensions["timeout"]["read"] for r in recorder.requests] == [3.5, 3.5]
