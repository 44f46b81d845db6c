"""
CLI Bridge: Entity listing.
Lists the content model entities of an environment straight from the
management API, so a caller can pick include/exclude/entities values.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import httpx

from . import config
from .errors import BridgeError

logger = logging.getLogger(__name__)

# kind -> (path, key holding the items; None when the body is a bare list)
ENTITY_ENDPOINTS: Dict[str, Tuple[str, Optional[str]]] = {
    "contentTypes": ("types", "types"),
    "contentTypeSnippets": ("snippets", "snippets"),
    "taxonomies": ("taxonomies", "taxonomies"),
    "collections": ("collections", "collections"),
    "spaces": ("spaces", None),
    "languages": ("languages", "languages"),
    "workflows": ("workflows", None),
}

# Kinds the management API has no flat listing for
UNLISTED_KINDS = ("assetFolders", "webSpotlight")

MAX_PAGES = 100


class EntityFetchError(BridgeError):
    pass


def _summary(item: dict) -> dict:
    return {"id": item.get("id"), "codename": item.get("codename"), "name": item.get("name")}


async def _list_all(client: httpx.AsyncClient, url: str, key: Optional[str], api_key: str) -> List[dict]:
    items: List[dict] = []
    token = None
    for _ in range(MAX_PAGES):
        headers = {"Authorization": f"Bearer {api_key}"}
        if token:
            headers["x-continuation"] = token
        resp = await client.get(url, headers=headers)
        resp.raise_for_status()
        body = resp.json()
        page = body if key is None else body.get(key, [])
        items.extend(_summary(item) for item in page)
        token = None if key is None else (body.get("pagination") or {}).get("continuation_token")
        if not token:
            break
    return items


def _as_fetch_error(exc: BaseException) -> EntityFetchError:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status == 401:
            return EntityFetchError(
                "Authentication failed",
                "Please check that your Management API key is correct and has the required permissions.",
            )
        if status == 404:
            return EntityFetchError("Environment not found", "Please verify that the environment ID is correct.")
    return EntityFetchError(
        "Failed to fetch entities",
        "Please verify your environment ID and Management API key are correct.",
    )


async def fetch_entities(
    environment_id: str,
    api_key: str,
    *,
    base_url: str = config.KONTENT_MANAGEMENT_URL,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, List[dict]]:
    """
    Fetch every listable kind concurrently. A kind that fails comes back as
    an empty list; if all of them fail, EntityFetchError is raised.
    """
    project_url = f"{base_url.rstrip('/')}/projects/{environment_id.strip()}"
    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)

    try:
        tasks = [
            _list_all(client, f"{project_url}/{path}", key, api_key.strip())
            for path, key in ENTITY_ENDPOINTS.values()
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        if own_client:
            await client.aclose()

    entities: Dict[str, List[dict]] = {}
    failures = []
    for kind, result in zip(ENTITY_ENDPOINTS, results):
        if isinstance(result, Exception):
            logger.warning("Fetching %s for %s failed: %s", kind, environment_id, result)
            failures.append(result)
            entities[kind] = []
        else:
            entities[kind] = result

    if len(failures) == len(ENTITY_ENDPOINTS):
        raise _as_fetch_error(failures[0])

    for kind in UNLISTED_KINDS:
        entities[kind] = []
    return entities
