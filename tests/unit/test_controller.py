"""Tests for inventory convergence."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from dtrack_seeder.client import DependencyTrackClient
from dtrack_seeder.controller import ConvergenceController, compute_delta
from dtrack_seeder.dispatcher import DispatchSettings
from dtrack_seeder.errors import ConfigurationError, DeletionError, SeederError


def _reconcile(service, manifests, desired: int, settings: DispatchSettings | None = None):
    controller = ConvergenceController(service, manifests, settings or DispatchSettings())
    return asyncio.run(controller.reconcile(desired))


@pytest.mark.parametrize(
    ("desired", "current", "delta"),
    [(10, 4, 6), (4, 10, -6), (7, 7, 0), (0, 3, -3)],
)
def test_compute_delta(desired: int, current: int, delta: int) -> None:
    assert compute_delta(desired, current) == delta


@pytest.mark.parametrize(("current", "desired"), [(0, 5), (3, 4), (2, 9)])
def test_growth_attempts_exactly_the_gap(fake_service, manifests, current, desired) -> None:
    service = fake_service(projects=current)
    result = _reconcile(service, manifests, desired, DispatchSettings(concurrency=3))

    assert result.action == "create"
    assert result.delta == desired - current
    assert result.attempted == desired - current
    assert service.upload_calls == desired - current
    assert service.deleted == []
    assert service.list_calls[0] == (1, 1)
    assert len(service.projects) == desired


@pytest.mark.parametrize(("current", "desired"), [(5, 0), (6, 4)])
def test_shrink_deletes_exactly_the_surplus(fake_service, manifests, current, desired) -> None:
    service = fake_service(projects=current)
    result = _reconcile(service, manifests, desired)

    assert result.action == "delete"
    assert result.deleted == current - desired
    assert result.attempted == current - desired
    assert len(service.deleted) == current - desired
    assert service.upload_calls == 0
    assert len(service.projects) == desired


def test_converged_inventory_is_left_alone(fake_service, manifests) -> None:
    service = fake_service(projects=3)
    result = _reconcile(service, manifests, 3)

    assert result.action == "converged"
    assert result.attempted == 0
    assert service.upload_calls == 0
    assert service.deleted == []
    assert service.list_calls == [(1, 1)]


def test_create_path_reports_failures_and_completion_time(fake_service, manifests) -> None:
    service = fake_service(fail_uploads={1}, processing_ticks=1)
    settings = DispatchSettings(skip_failed=True, wait=True, poll_interval=0.01)
    result = _reconcile(service, manifests, 3, settings)

    assert result.attempted == 3
    assert result.failed == 1
    assert result.elapsed_with_completion is not None
    assert len(result.outcomes) == 3


def test_elapsed_with_completion_absent_without_wait(fake_service, manifests) -> None:
    result = _reconcile(fake_service(), manifests, 2)
    assert result.elapsed_with_completion is None


def test_delete_failures_propagate(fake_service, manifests) -> None:
    service = fake_service(projects=3, fail_delete={1})
    with pytest.raises(DeletionError):
        _reconcile(service, manifests, 0)


def test_negative_target_is_rejected(fake_service, manifests) -> None:
    with pytest.raises(ConfigurationError):
        _reconcile(fake_service(), manifests, -1)


def test_growth_without_manifests_is_a_configuration_error(fake_service) -> None:
    with pytest.raises(ConfigurationError):
        _reconcile(fake_service(), [], 1)


def _reconcile_over_http(handler, manifests, desired: int):
    async def scenario():
        transport = httpx.MockTransport(handler)
        async with DependencyTrackClient("http://dtrack.test:8080", transport=transport) as client:
            controller = ConvergenceController(client, manifests, DispatchSettings())
            return await controller.reconcile(desired)

    return asyncio.run(scenario())


def test_unknown_inventory_size_aborts_before_any_upload(manifests) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path == "/api/v1/project":
            return httpx.Response(200, json=[{"uuid": "u-1", "name": "only"}])
        return httpx.Response(200, json={"token": "t-1"})

    with pytest.raises(SeederError) as excinfo:
        _reconcile_over_http(handler, manifests, 10)

    assert excinfo.value.operation == "get_projects"
    assert excinfo.value.status_code == 200
    assert excinfo.value.elapsed is not None
    assert [r.url.path for r in requests] == ["/api/v1/project"]


def test_undecodable_project_listing_is_a_seeder_error(manifests) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>", headers={"X-Total-Count": "1"})

    with pytest.raises(SeederError) as excinfo:
        _reconcile_over_http(handler, manifests, 3)

    assert excinfo.value.operation == "get_projects"
    assert excinfo.value.elapsed is not None
    assert "failed to get projects" in excinfo.value.describe()
