"""Test a single cleanup pass."""

from conftest import (
    FAKE_HOST,
    FakeClusterClient,
    FakeRegistryClient,
    make_digest,
    make_image,
    make_pod,
)

from kube_reaper.exceptions import (
    ImageDeleteError,
    ImageListError,
    PodListError,
    RepositoryListError,
)
from kube_reaper.services.reaper import Reaper


def _inventory() -> dict:
    return {
        "app": [make_image(n) for n in range(1, 6)],
        "team/worker": [make_image(n) for n in range(1, 4)],
        "tools": [make_image(n) for n in range(1, 3)],
    }


def test_pass_deletes_old_unused() -> None:
    pods = [
        make_pod("app", f"{FAKE_HOST}/app:T4"),
        make_pod("worker", f"{FAKE_HOST}/team/worker@{make_digest(3)}"),
        make_pod("other", "elsewhere.example.org/app:T1"),
    ]
    cluster = FakeClusterClient(pods)
    registry = FakeRegistryClient(_inventory())
    reaper = Reaper(cluster, registry)

    errors = reaper.run_pass(["default"], ["app", "team/worker", "tools"], 2)

    assert errors == []
    assert cluster.calls == [["default"]]
    # app: T4 in use, keep T1; worker: T3 in use, keep T1; tools: fits.
    assert registry.delete_calls == [
        ("app", [make_digest(n) for n in (2, 3, 5)]),
        ("team/worker", [make_digest(2)]),
    ]
    assert sorted(next(iter(x.tags)) for x in registry.inventory["app"]) == [
        "T1",
        "T4",
    ]


def test_second_pass_is_a_noop() -> None:
    registry = FakeRegistryClient(_inventory())
    reaper = Reaper(FakeClusterClient(), registry)
    assert reaper.run_pass([], [], 1) == []
    calls = len(registry.delete_calls)
    assert reaper.run_pass([], [], 1) == []
    assert len(registry.delete_calls) == calls


def test_pod_listing_fails() -> None:
    """Without pods, nothing can be known to be unused."""
    registry = FakeRegistryClient(_inventory())
    cluster = FakeClusterClient(error=RuntimeError("forbidden"))
    reaper = Reaper(cluster, registry)
    errors = reaper.run_pass([], ["app"], 0)
    assert len(errors) == 1
    assert isinstance(errors[0], PodListError)
    assert "forbidden" in str(errors[0])
    assert isinstance(errors[0].__cause__, RuntimeError)
    assert registry.delete_calls == []


def test_repository_listing_fails() -> None:
    registry = FakeRegistryClient(
        _inventory(), list_error=RuntimeError("RepositoryNotFoundException")
    )
    reaper = Reaper(FakeClusterClient(), registry)
    errors = reaper.run_pass([], ["app", "tools"], 0)
    assert len(errors) == 1
    assert isinstance(errors[0], RepositoryListError)
    assert errors[0].repository is None
    assert registry.delete_calls == []


def test_image_listing_fails_for_one_repository() -> None:
    registry = FakeRegistryClient(
        _inventory(),
        image_errors={"team/worker": RuntimeError("throttled")},
    )
    reaper = Reaper(FakeClusterClient(), registry)
    errors = reaper.run_pass([], ["app", "team/worker", "tools"], 1)
    assert len(errors) == 1
    assert isinstance(errors[0], ImageListError)
    assert errors[0].repository == "team/worker"
    assert "'team/worker'" in str(errors[0])
    assert registry.delete_calls == [
        ("app", [make_digest(n) for n in range(2, 6)]),
        ("tools", [make_digest(2)]),
    ]
    assert len(registry.inventory["team/worker"]) == 3


def test_delete_fails_for_one_repository() -> None:
    registry = FakeRegistryClient(
        _inventory(), delete_errors={"app": RuntimeError("denied")}
    )
    reaper = Reaper(FakeClusterClient(), registry)
    errors = reaper.run_pass([], ["app", "team/worker", "tools"], 1)
    assert len(errors) == 1
    assert isinstance(errors[0], ImageDeleteError)
    assert errors[0].repository == "app"
    assert [x[0] for x in registry.delete_calls] == [
        "app",
        "team/worker",
        "tools",
    ]


def test_errors_follow_repository_order() -> None:
    registry = FakeRegistryClient(
        _inventory(),
        image_errors={"tools": RuntimeError("a")},
        delete_errors={"app": RuntimeError("b")},
    )
    reaper = Reaper(FakeClusterClient(), registry)
    errors = reaper.run_pass([], ["tools", "team/worker", "app"], 0)
    assert [type(x) for x in errors] == [ImageListError, ImageDeleteError]
    assert [x.repository for x in errors] == ["tools", "app"]


def test_nothing_to_do() -> None:
    """No repositories, no pods, or nothing over the margin: no errors."""
    registry = FakeRegistryClient({})
    reaper = Reaper(FakeClusterClient(), registry)
    assert reaper.run_pass([], [], 3) == []

    registry = FakeRegistryClient({"app": [make_image(1)]})
    reaper = Reaper(FakeClusterClient(), registry)
    assert reaper.run_pass([], ["app"], 3) == []
    assert registry.delete_calls == []
