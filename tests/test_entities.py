import asyncio

import httpx
import pytest

from cli_bridge import router as router_mod
from cli_bridge.entities import EntityFetchError, fetch_entities
from data_ops_bridge import app

from conftest import API_KEY, ENV_ID

BASE = "https://manage.test/v2"


def item(n):
    return {"id": f"id-{n}", "codename": f"code_{n}", "name": f"Name {n}", "extra": "ignored"}


def management_api(request: httpx.Request) -> httpx.Response:
    assert request.headers["authorization"] == f"Bearer {API_KEY}"
    kind = request.url.path.rsplit("/", 1)[-1]
    if kind == "types":
        if request.headers.get("x-continuation") == "page2":
            return httpx.Response(200, json={"types": [item(2)], "pagination": {"continuation_token": None}})
        return httpx.Response(200, json={"types": [item(1)], "pagination": {"continuation_token": "page2"}})
    if kind in ("spaces", "workflows"):
        return httpx.Response(200, json=[item(kind)])
    if kind == "languages":
        return httpx.Response(500, json={"message": "boom"})
    return httpx.Response(200, json={kind: [item(kind)]})


def run_fetch(handler, **kwargs):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_entities(ENV_ID, API_KEY, base_url=BASE, client=client, **kwargs)
    return asyncio.run(run())


def test_lists_every_kind_and_follows_pagination():
    entities = run_fetch(management_api)
    assert entities["contentTypes"] == [
        {"id": "id-1", "codename": "code_1", "name": "Name 1"},
        {"id": "id-2", "codename": "code_2", "name": "Name 2"},
    ]
    assert entities["contentTypeSnippets"] == [{"id": "id-snippets", "codename": "code_snippets", "name": "Name snippets"}]
    assert entities["spaces"][0]["codename"] == "code_spaces"
    assert entities["languages"] == []
    assert entities["assetFolders"] == [] and entities["webSpotlight"] == []


@pytest.mark.parametrize("status,message", [
    (401, "Authentication failed"),
    (404, "Environment not found"),
    (503, "Failed to fetch entities"),
])
def test_all_kinds_failing_raises(status, message):
    with pytest.raises(EntityFetchError) as exc:
        run_fetch(lambda request: httpx.Response(status))
    assert exc.value.message == message
    assert exc.value.solution


@pytest.fixture
def entities_client(client):
    async def mocked_client():
        async with httpx.AsyncClient(transport=httpx.MockTransport(management_api)) as c:
            yield c
    app.dependency_overrides[router_mod.get_http_client] = mocked_client
    return client


def test_endpoint_validates_input(entities_client):
    resp = entities_client.post("/api/fetch-entities", json={"environmentId": ENV_ID})
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "environmentId and apiKey are required"

    resp = entities_client.post("/api/fetch-entities", json={"environmentId": "nope", "apiKey": API_KEY})
    assert resp.json()["detail"]["error"] == "Invalid environment ID format"

    resp = entities_client.post("/api/fetch-entities", json={"environmentId": ENV_ID, "apiKey": "short"})
    assert resp.json()["detail"]["error"] == "Invalid API key format"


def test_endpoint_returns_entities(entities_client):
    resp = entities_client.post("/api/fetch-entities", json={"environmentId": ENV_ID, "apiKey": API_KEY})
    assert resp.status_code == 200
    assert len(resp.json()["contentTypes"]) == 2
