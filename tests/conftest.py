"""Pytest fixtures and path configuration for dtrack-seeder tests."""

from __future__ import annotations

import asyncio
import json
import sys
import uuid
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs

import httpx
import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = REPO_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from dtrack_seeder.client import APIError, Page, RemoteProject  # noqa: E402
from dtrack_seeder.manifests import Manifest  # noqa: E402


def _api_error(method: str, path: str, status: int = 500) -> APIError:
    return APIError(
        f"HTTP {status} for {method} {path}: boom",
        method=method,
        path=path,
        status_code=status,
        body="boom",
        error_type=f"http_{status}",
    )


class FakeInventoryService:
    """In-memory stand-in for the client surface the core uses.

    ``fail_uploads`` holds 1-based upload call numbers that should be rejected.
    Status queries report "processing" for the first ``processing_ticks``
    queries of each token.
    """

    def __init__(
        self,
        *,
        projects: int = 0,
        upload_latency: float = 0.0,
        fail_uploads: set[int] | None = None,
        processing_ticks: int = 0,
        status_error: bool = False,
        fail_delete: set[int] | None = None,
    ) -> None:
        self.projects = [
            RemoteProject(uuid=str(uuid.uuid4()), name=f"existing-{i}") for i in range(projects)
        ]
        self.upload_latency = upload_latency
        self.fail_uploads = set(fail_uploads or ())
        self.processing_ticks = processing_ticks
        self.status_error = status_error
        self.fail_delete = set(fail_delete or ())
        self.upload_calls = 0
        self.uploads: list[dict[str, Any]] = []
        self.in_flight = 0
        self.peak_in_flight = 0
        self.deleted: list[str] = []
        self.delete_calls = 0
        self.list_calls: list[tuple[int, int]] = []
        self.status_queries: dict[str, int] = defaultdict(int)

    async def get_projects(self, page_number: int, page_size: int) -> Page[RemoteProject]:
        self.list_calls.append((page_number, page_size))
        start = (page_number - 1) * page_size
        items = list(self.projects[start : start + page_size])
        return Page(items=items, total_count=len(self.projects))

    async def delete_project(self, project_uuid: str) -> None:
        self.delete_calls += 1
        if self.delete_calls in self.fail_delete:
            raise _api_error("DELETE", f"/api/v1/project/{project_uuid}")
        self.projects = [p for p in self.projects if p.uuid != project_uuid]
        self.deleted.append(project_uuid)

    async def upload_bom(
        self, project_name: str, project_version: str, bom: bytes, *, auto_create: bool = True
    ) -> str:
        self.upload_calls += 1
        call = self.upload_calls
        self.in_flight += 1
        self.peak_in_flight = max(self.peak_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.upload_latency)
            if call in self.fail_uploads:
                raise _api_error("PUT", "/api/v1/bom")
            token = str(uuid.uuid4())
            self.uploads.append(
                {
                    "call": call,
                    "name": project_name,
                    "version": project_version,
                    "bom": bom,
                    "auto_create": auto_create,
                    "token": token,
                }
            )
            self.projects.append(
                RemoteProject(uuid=str(uuid.uuid4()), name=project_name, version=project_version)
            )
            return token
        finally:
            self.in_flight -= 1

    async def is_being_processed(self, token: str) -> bool:
        self.status_queries[token] += 1
        if self.status_error:
            raise _api_error("GET", f"/api/v1/bom/token/{token}")
        return self.status_queries[token] <= self.processing_ticks


class FakeDependencyTrackApp:
    """Request handler emulating the Dependency-Track endpoints over ``httpx.MockTransport``."""

    def __init__(
        self,
        *,
        password: str = "s3cret",
        first_launch: bool = False,
        projects: int = 0,
        admin_keys: list[str] | None = None,
        include_admin_team: bool = True,
    ) -> None:
        # A fresh instance only accepts the factory password, and only for a forced change.
        self.password = "admin" if first_launch else password
        self.first_launch = first_launch
        self.projects = [{"uuid": str(uuid.uuid4()), "name": f"p{i}"} for i in range(projects)]
        self.admin_team = {
            "uuid": str(uuid.uuid4()),
            "name": "Administrators",
            "apiKeys": [{"key": key} for key in (admin_keys or [])],
        }
        self.include_admin_team = include_admin_team
        self.generated_key = "generated-key"
        self.requests: list[httpx.Request] = []
        self.uploads: list[dict[str, Any]] = []
        self.password_changes = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        method = request.method
        if path == "/api/version":
            return httpx.Response(200, json={"version": "4.11.0"})
        if path == "/api/v1/user/login" and method == "POST":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            if self.first_launch or form.get("password") != self.password:
                return httpx.Response(401, text="Unauthorized")
            return httpx.Response(200, text="jwt-token")
        if path == "/api/v1/user/forceChangePassword" and method == "POST":
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            if form.get("password") != self.password:
                return httpx.Response(401, text="Unauthorized")
            self.password = form["newPassword"]
            self.first_launch = False
            self.password_changes += 1
            return httpx.Response(200)
        if not self._authorized(request):
            return httpx.Response(401, text="Unauthorized")
        if path == "/api/v1/team" and method == "GET":
            teams = [{"uuid": str(uuid.uuid4()), "name": "Automation", "apiKeys": []}]
            if self.include_admin_team:
                teams.append(self.admin_team)
            return httpx.Response(200, json=teams, headers={"X-Total-Count": str(len(teams))})
        if path.startswith("/api/v1/team/") and path.endswith("/key") and method == "PUT":
            return httpx.Response(201, json={"key": self.generated_key})
        if path == "/api/v1/project" and method == "GET":
            page_number = int(request.url.params.get("pageNumber", "1"))
            page_size = int(request.url.params.get("pageSize", "100"))
            start = (page_number - 1) * page_size
            return httpx.Response(
                200,
                json=self.projects[start : start + page_size],
                headers={"X-Total-Count": str(len(self.projects))},
            )
        if path.startswith("/api/v1/project/") and method == "DELETE":
            project_uuid = path.rsplit("/", 1)[-1]
            self.projects = [p for p in self.projects if p["uuid"] != project_uuid]
            return httpx.Response(204)
        if path == "/api/v1/bom" and method == "PUT":
            payload = json.loads(request.content)
            token = str(uuid.uuid4())
            self.uploads.append(payload)
            self.projects.append(
                {
                    "uuid": str(uuid.uuid4()),
                    "name": payload["projectName"],
                    "version": payload["projectVersion"],
                }
            )
            return httpx.Response(200, json={"token": token})
        if path.startswith("/api/v1/bom/token/") and method == "GET":
            return httpx.Response(200, json={"processing": False})
        return httpx.Response(404, text=f"no route for {method} {path}")

    def _authorized(self, request: httpx.Request) -> bool:
        if request.headers.get("Authorization") == "Bearer jwt-token":
            return True
        key = request.headers.get("X-Api-Key")
        valid = {entry["key"] for entry in self.admin_team["apiKeys"]} | {self.generated_key}
        return key in valid


def bom_document(
    name: str | None = None, group: str | None = None, version: str | None = None
) -> dict[str, Any]:
    document: dict[str, Any] = {"bomFormat": "CycloneDX", "specVersion": "1.5", "version": 1}
    component = {
        key: value
        for key, value in (("name", name), ("group", group), ("version", version))
        if value is not None
    }
    if component:
        component["type"] = "application"
        document["metadata"] = {"component": component}
    return document


def make_manifest(name: str, document: dict[str, Any] | bytes) -> Manifest:
    content = document if isinstance(document, bytes) else json.dumps(document).encode("utf-8")
    return Manifest(path=Path(f"/boms/{name}.cdx.json"), content=content)


@pytest.fixture
def fake_service() -> Callable[..., FakeInventoryService]:
    return FakeInventoryService


@pytest.fixture
def fake_app() -> Callable[..., FakeDependencyTrackApp]:
    return FakeDependencyTrackApp


@pytest.fixture
def manifests() -> list[Manifest]:
    return [
        make_manifest("alpha", bom_document("alpha", "acme", "1.0")),
        make_manifest("beta", bom_document("beta")),
        make_manifest("gamma", bom_document()),
    ]


@pytest.fixture
def bom_dir(tmp_path: Path) -> Path:
    root = tmp_path / "boms"
    root.mkdir()
    for name, document in (
        ("b-service", bom_document("service", "acme", "2.1")),
        ("a-library", bom_document("library")),
    ):
        (root / f"{name}.cdx.json").write_text(json.dumps(document), encoding="utf-8")
    (root / "notes.txt").write_text("not a bom", encoding="utf-8")
    return root


@pytest.fixture
def bom_factory() -> Callable[..., dict[str, Any]]:
    return bom_document


@pytest.fixture
def manifest_factory() -> Callable[..., Manifest]:
    return make_manifest
