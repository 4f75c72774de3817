from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from pydantic import SecretStr

from repokeeper.core.config import GitHubConfig
from repokeeper.core.result import Err, Ok, RemoteError
from repokeeper.github.client import CommitRecord, GitHubClient

REPO = "octo/widgets"
SHA_A = "a" * 40
SHA_B = "b" * 40
TREE = "e" * 40


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> GitHubClient:
    config = GitHubConfig(token=SecretStr("ghp_test"), api_url="https://api.example.test/")
    return GitHubClient(config, transport=httpx.MockTransport(handler))


def _listing_item(sha: str, message: str, parents: list[str]) -> dict:
    return {
        "sha": sha,
        "commit": {"message": message, "tree": {"sha": TREE}},
        "parents": [{"sha": p} for p in parents],
    }


@pytest.mark.asyncio
async def test_request_sends_github_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"default_branch": "trunk"})

    async with _client(handler) as client:
        assert await client.get_default_branch(REPO) == Ok("trunk")

    request = seen[0]
    assert str(request.url) == "https://api.example.test/repos/octo/widgets"
    assert request.headers["Authorization"] == "token ghp_test"
    assert request.headers["Accept"] == "application/vnd.github.v3+json"
    assert request.headers["User-Agent"] == "GitHub-Repo-Cleaner"


@pytest.mark.asyncio
async def test_get_commits_parses_listing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/octo/widgets/commits"
        assert request.url.params["sha"] == "main"
        assert request.url.params["per_page"] == "2"
        return httpx.Response(
            200,
            json=[
                _listing_item(SHA_A, "second\n\nbody", [SHA_B]),
                _listing_item(SHA_B, "first", []),
            ],
        )

    async with _client(handler) as client:
        commits = (await client.get_commits(REPO, "main", 2)).unwrap()

    assert commits == [
        CommitRecord(SHA_A, "second\n\nbody", TREE, (SHA_B,)),
        CommitRecord(SHA_B, "first", TREE, ()),
    ]
    assert commits[0].summary == "second"
    assert commits[1].is_root


@pytest.mark.asyncio
async def test_get_commits_on_empty_repository_is_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"message": "Git Repository is empty."})

    async with _client(handler) as client:
        assert await client.get_commits(REPO, "main", 50) == Ok([])


@pytest.mark.asyncio
async def test_create_commit_posts_tree_and_parents() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/repos/octo/widgets/git/commits"
        bodies.append(json.loads(request.content))
        return httpx.Response(201, json={"sha": SHA_A})

    async with _client(handler) as client:
        assert await client.create_commit(REPO, "msg", TREE, [SHA_B]) == Ok(SHA_A)
        assert await client.create_commit(REPO, "root", TREE, []) == Ok(SHA_A)

    assert bodies[0] == {"message": "msg", "tree": TREE, "parents": [SHA_B]}
    assert bodies[1]["parents"] == []


@pytest.mark.asyncio
async def test_get_commit_reads_git_object() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/repos/octo/widgets/git/commits/{SHA_A}"
        return httpx.Response(
            200,
            json={
                "sha": SHA_A,
                "message": "hello",
                "tree": {"sha": TREE},
                "parents": [{"sha": SHA_B}],
            },
        )

    async with _client(handler) as client:
        commit = (await client.get_commit(REPO, SHA_A)).unwrap()

    assert commit == CommitRecord(SHA_A, "hello", TREE, (SHA_B,))


@pytest.mark.asyncio
async def test_update_ref_forces() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.path == "/repos/octo/widgets/git/refs/heads/feature/x"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"object": {"sha": SHA_A}})

    async with _client(handler) as client:
        assert await client.update_ref(REPO, "feature/x", SHA_A) == Ok(None)

    assert bodies == [{"sha": SHA_A, "force": True}]


@pytest.mark.asyncio
async def test_get_ref() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/repos/octo/widgets/git/ref/heads/main"
        return httpx.Response(200, json={"ref": "refs/heads/main", "object": {"sha": SHA_B}})

    async with _client(handler) as client:
        assert await client.get_ref(REPO, "main") == Ok(SHA_B)


@pytest.mark.asyncio
async def test_error_status_becomes_remote_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text='{"message": "Tree SHA does not exist"}')

    async with _client(handler) as client:
        result = await client.create_commit(REPO, "msg", TREE, [])

    assert isinstance(result, Err)
    assert isinstance(result.error, RemoteError)
    assert result.error.status_code == 422
    assert not result.error.transient
    assert result.error.message.startswith("GitHub API Error: 422 - ")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "headers", "transient"),
    [
        (502, {}, True),
        (429, {}, True),
        (403, {"x-ratelimit-remaining": "0"}, True),
        (403, {}, False),
        (404, {}, False),
    ],
)
async def test_transient_classification(status: int, headers: dict, transient: bool) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, headers=headers, text="nope")

    async with _client(handler) as client:
        result = await client.get_ref(REPO, "main")

    assert isinstance(result, Err)
    assert result.error.transient is transient


@pytest.mark.asyncio
async def test_transport_failure_is_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await client.get_commits(REPO, "main", 10)

    assert isinstance(result, Err)
    assert result.error.transient
    assert result.error.status_code is None


@pytest.mark.asyncio
async def test_empty_body_decodes_to_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    async with _client(handler) as client:
        assert await client.request("DELETE", "/repos/octo/widgets") == Ok(None)


@pytest.mark.asyncio
async def test_malformed_payload_is_remote_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"sha": SHA_A}])

    async with _client(handler) as client:
        result = await client.get_commits(REPO, "main", 10)

    assert isinstance(result, Err)
    assert "Unexpected commit listing payload" in result.error.message
