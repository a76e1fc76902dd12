"""Docker Registry HTTP API v2 tag provider.

Works against Docker Hub and any v2 registry that issues bearer tokens via
a ``WWW-Authenticate`` challenge (GHCR, Quay, Harbor, GitLab). Anonymous
registries that answer the tag request directly need no token at all.
"""

from __future__ import annotations

import re

import httpx
import structlog

from nanocd.errors import RegistryUnavailable
from nanocd.observability.metrics import registry_requests_total
from nanocd.registry.base import TagProvider

_log = structlog.get_logger(component="registry.v2")

DOCKER_HUB_REGISTRY = "registry-1.docker.io"
DOCKER_HUB_ALIASES = frozenset({"docker.io", "index.docker.io", DOCKER_HUB_REGISTRY})

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def locate(repository: str) -> tuple[str, str]:
    """Split *repository* into (registry host, repository path).

    The first component is a registry host when it contains ``.`` or ``:``
    or is ``localhost``; otherwise the repository lives on Docker Hub, where
    single-component names are official images under ``library/``.
    """
    first, sep, rest = repository.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        host, path = first, rest
    else:
        host, path = DOCKER_HUB_REGISTRY, repository
    if host in DOCKER_HUB_ALIASES:
        host = DOCKER_HUB_REGISTRY
        if "/" not in path:
            path = f"library/{path}"
    return host, path


def parse_challenge(header: str | None) -> dict[str, str]:
    """Parse a ``Bearer realm="...",service="..."`` challenge into a dict.

    Returns an empty dict for missing headers and non-Bearer schemes.
    """
    if not header:
        return {}
    scheme, _, params = header.partition(" ")
    if scheme.lower() != "bearer":
        return {}
    return dict(_CHALLENGE_PARAM.findall(params))


class RegistryTagProvider(TagProvider):
    """Lists tags through ``GET /v2/<repo>/tags/list``.

    Args:
        client:    Shared AsyncClient; one is created (and owned) when omitted.
        timeout:   Per-request timeout in seconds.
        max_pages: Pages of ``Link: rel="next"`` followed; more is RegistryUnavailable.
        scheme:    ``https`` in production; tests may use ``http``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        max_pages: int = 20,
        scheme: str = "https",
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._timeout = timeout
        self._max_pages = max_pages
        self._scheme = scheme

    async def list_tags(self, repository: str) -> list[str]:
        host, path = locate(repository)
        url: str | None = f"{self._scheme}://{host}/v2/{path}/tags/list"
        token: str | None = None
        tags: list[str] = []
        pages = 0

        try:
            while url is not None and pages < self._max_pages:
                response = await self._get(url, token)
                if response.status_code == 401 and token is None:
                    token = await self._fetch_token(repository, path, response.headers.get("WWW-Authenticate"))
                    response = await self._get(url, token)
                if response.status_code != 200:
                    raise RegistryUnavailable(repository, f"tag list returned HTTP {response.status_code}")

                tags.extend(_tags_from_body(repository, response))
                pages += 1
                url = _next_page(response)

            if url is not None:
                raise RegistryUnavailable(repository, f"page limit of {self._max_pages} reached")
        except httpx.TimeoutException as exc:
            registry_requests_total.labels(result="error").inc()
            raise RegistryUnavailable(repository, f"timed out after {self._timeout}s") from exc
        except httpx.HTTPError as exc:
            registry_requests_total.labels(result="error").inc()
            raise RegistryUnavailable(repository, str(exc) or type(exc).__name__) from exc
        except RegistryUnavailable:
            registry_requests_total.labels(result="error").inc()
            raise

        registry_requests_total.labels(result="ok").inc()
        _log.debug("registry_tags_listed", repository=repository, registry=host, tags=len(tags))
        return tags

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, url: str, token: str | None) -> httpx.Response:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return await self._client.get(url, headers=headers, timeout=self._timeout)

    async def _fetch_token(self, repository: str, path: str, challenge: str | None) -> str:
        """Exchange the registry's Bearer challenge for a ``repository:<path>:pull`` token."""
        params = parse_challenge(challenge)
        realm = params.get("realm")
        if not realm:
            raise RegistryUnavailable(repository, "unauthorized and no bearer challenge offered")

        query = {"scope": f"repository:{path}:pull"}
        if service := params.get("service"):
            query["service"] = service

        response = await self._client.get(realm, params=query, timeout=self._timeout)
        if response.status_code != 200:
            raise RegistryUnavailable(repository, f"token request returned HTTP {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise RegistryUnavailable(repository, "token response is not JSON") from exc

        if not isinstance(data, dict):
            raise RegistryUnavailable(repository, "token response is not a JSON object")
        token = data.get("token") or data.get("access_token")
        if not token:
            raise RegistryUnavailable(repository, "token response carries no token")
        return str(token)


def _tags_from_body(repository: str, response: httpx.Response) -> list[str]:
    try:
        data = response.json()
    except ValueError as exc:
        raise RegistryUnavailable(repository, "tag list is not JSON") from exc
    if not isinstance(data, dict):
        raise RegistryUnavailable(repository, "tag list is not a JSON object")
    tags = data.get("tags") or []
    if not isinstance(tags, list):
        raise RegistryUnavailable(repository, "tag list 'tags' is not an array")
    return [t for t in tags if isinstance(t, str)]


def _next_page(response: httpx.Response) -> str | None:
    link = response.links.get("next")
    if not link or not link.get("url"):
        return None
    return str(response.url.join(link["url"]))
