"""Async Dependency-Track REST client used by the seeding pipeline."""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Mapping, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_PAGE_SIZE = 100


class APIError(RuntimeError):
    """Raised when the service answers with a non-2xx status or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        path: str,
        status_code: int | None = None,
        body: str = "",
        error_type: str = "api_error",
    ) -> None:
        super().__init__(message)
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        self.error_type = error_type


@dataclass(slots=True)
class RemoteProject:
    """Project as listed by the service; only the UUID matters to the seeder."""

    uuid: str
    name: str = ""
    version: str | None = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "RemoteProject":
        return cls(
            uuid=str(payload["uuid"]),
            name=str(payload.get("name") or ""),
            version=payload.get("version"),
        )


@dataclass(slots=True)
class Team:
    uuid: str
    name: str
    api_keys: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Team":
        keys = tuple(
            str(entry["key"])
            for entry in payload.get("apiKeys") or ()
            if isinstance(entry, Mapping) and entry.get("key")
        )
        return cls(uuid=str(payload["uuid"]), name=str(payload.get("name") or ""), api_keys=keys)


@dataclass
class Page(Generic[T]):
    """One page of a paginated listing plus the server-reported total."""

    items: list[T] = field(default_factory=list)
    total_count: int = 0


async def fetch_all(
    fetch_page: Callable[[int, int], Awaitable[Page[T]]],
    *,
    page_size: int = _DEFAULT_PAGE_SIZE,
) -> list[T]:
    """Walk every page of a listing, starting at page 1, until the total is reached."""

    items: list[T] = []
    page_number = 1
    while True:
        page = await fetch_page(page_number, page_size)
        items.extend(page.items)
        if not page.items or len(items) >= page.total_count:
            return items
        page_number += 1


class DependencyTrackClient:
    """Thin async wrapper around the Dependency-Track API.

    A client carries at most one credential. ``with_bearer_token`` and
    ``with_api_key`` return new clients bound to the same base URL and
    transport, mirroring the login -> API key bootstrap sequence.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        bearer_token: str | None = None,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must not be empty.")
        self.base_url = base_url.rstrip("/")
        self._url = httpx.URL(self.base_url)
        if not self._url.host:
            raise ValueError(f"base_url has no host: {base_url!r}")
        self._api_key = api_key
        self._bearer_token = bearer_token
        self._timeout_seconds = timeout_seconds
        self._transport = transport
        headers = {"Accept": "application/json"}
        if api_key:
            headers["X-Api-Key"] = api_key
        elif bearer_token:
            headers["Authorization"] = f"Bearer {bearer_token}"
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    @property
    def host(self) -> str:
        return self._url.host

    @property
    def port(self) -> int:
        if self._url.port is not None:
            return self._url.port
        return 443 if self._url.scheme == "https" else 80

    def with_bearer_token(self, token: str) -> "DependencyTrackClient":
        return DependencyTrackClient(
            self.base_url,
            bearer_token=token,
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
        )

    def with_api_key(self, api_key: str) -> "DependencyTrackClient":
        return DependencyTrackClient(
            self.base_url,
            api_key=api_key,
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "DependencyTrackClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise APIError(
                f"{method} {path} failed: {exc.__class__.__name__}: {exc}",
                method=method,
                path=path,
                error_type="http_error",
            ) from exc
        latency_ms = (time.perf_counter() - start) * 1000.0
        if response.status_code >= 400:
            body = response.text
            logger.debug(
                "%s %s failed with HTTP %d in %.0f ms: %s",
                method,
                path,
                response.status_code,
                latency_ms,
                body[:200],
            )
            raise APIError(
                f"HTTP {response.status_code} for {method} {path}: {body[:200]}",
                method=method,
                path=path,
                status_code=response.status_code,
                body=body,
                error_type=f"http_{response.status_code}",
            )
        logger.debug("%s %s -> %d in %.0f ms", method, path, response.status_code, latency_ms)
        return response

    @staticmethod
    def _payload_error(response: httpx.Response, detail: str, error_type: str) -> APIError:
        method = response.request.method
        path = response.request.url.path
        return APIError(
            f"{method} {path} returned {detail}",
            method=method,
            path=path,
            status_code=response.status_code,
            body=response.text[:200],
            error_type=error_type,
        )

    def _total_count(self, response: httpx.Response) -> int:
        raw = response.headers.get("X-Total-Count")
        try:
            total = int(raw)
        except (TypeError, ValueError):
            raise self._payload_error(
                response, f"an unusable X-Total-Count header: {raw!r}", "missing_total_count"
            ) from None
        if total < 0:
            raise self._payload_error(
                response, f"a negative X-Total-Count header: {raw!r}", "missing_total_count"
            )
        return total

    def _json_object(self, response: httpx.Response) -> Mapping[str, Any]:
        payload = response.json()
        if not isinstance(payload, Mapping):
            raise self._payload_error(
                response,
                f"a {type(payload).__name__} where an object was expected",
                "unexpected_payload",
            )
        return payload

    def _json_records(
        self, response: httpx.Response, parse: Callable[[Mapping[str, Any]], T]
    ) -> list[T]:
        payload = response.json()
        if not isinstance(payload, list):
            raise self._payload_error(
                response,
                f"a {type(payload).__name__} where a list was expected",
                "unexpected_payload",
            )
        try:
            return [parse(entry) for entry in payload]
        except (AttributeError, KeyError, TypeError) as exc:
            raise self._payload_error(
                response, f"a malformed record: {exc!r}", "unexpected_payload"
            ) from exc

    def _json_string(self, response: httpx.Response, key: str) -> str:
        value = self._json_object(response).get(key)
        if not isinstance(value, str) or not value:
            raise self._payload_error(response, f"no usable {key!r} field", "unexpected_payload")
        return value

    async def about(self) -> Mapping[str, Any]:
        response = await self._request("GET", "/api/version")
        return response.json()

    async def login(self, username: str, password: str) -> str:
        response = await self._request(
            "POST",
            "/api/v1/user/login",
            data={"username": username, "password": password},
        )
        return response.text.strip()

    async def force_change_password(
        self, username: str, password: str, new_password: str
    ) -> None:
        await self._request(
            "POST",
            "/api/v1/user/forceChangePassword",
            data={
                "username": username,
                "password": password,
                "newPassword": new_password,
                "confirmPassword": new_password,
            },
        )

    async def get_teams(self, page_number: int, page_size: int) -> Page[Team]:
        response = await self._request(
            "GET", "/api/v1/team", params={"pageNumber": page_number, "pageSize": page_size}
        )
        items = self._json_records(response, Team.from_payload)
        return Page(items=items, total_count=self._total_count(response))

    async def generate_api_key(self, team_uuid: str) -> str:
        response = await self._request("PUT", f"/api/v1/team/{team_uuid}/key")
        return self._json_string(response, "key")

    async def get_projects(self, page_number: int, page_size: int) -> Page[RemoteProject]:
        response = await self._request(
            "GET",
            "/api/v1/project",
            params={"pageNumber": page_number, "pageSize": page_size},
        )
        items = self._json_records(response, RemoteProject.from_payload)
        return Page(items=items, total_count=self._total_count(response))

    async def delete_project(self, project_uuid: str) -> None:
        await self._request("DELETE", f"/api/v1/project/{project_uuid}")

    async def upload_bom(
        self,
        project_name: str,
        project_version: str,
        bom: bytes,
        *,
        auto_create: bool = True,
    ) -> str:
        """Submit a BOM and return the processing token."""

        payload = {
            "projectName": project_name,
            "projectVersion": project_version,
            "autoCreate": auto_create,
            "bom": base64.standard_b64encode(bom).decode("ascii"),
        }
        response = await self._request("PUT", "/api/v1/bom", json=payload)
        return self._json_string(response, "token")

    async def is_being_processed(self, token: str) -> bool:
        response = await self._request("GET", f"/api/v1/bom/token/{token}")
        processing = self._json_object(response).get("processing")
        if not isinstance(processing, bool):
            raise self._payload_error(
                response, f"no boolean 'processing' field: {processing!r}", "unexpected_payload"
            )
        return processing


__all__ = [
    "APIError",
    "DependencyTrackClient",
    "Page",
    "RemoteProject",
    "Team",
    "fetch_all",
]
