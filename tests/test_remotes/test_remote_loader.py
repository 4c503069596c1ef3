"""
Tests for the remote loader.

These tests verify the load state machine and that no failure, wherever it
happens, escapes to the host.
"""

import asyncio
import types

import pytest

from messaging.event_bus import EventBus
from remotes.loader import Failed, Mounted, MountStatus, RemoteLoader, is_compatible
from remotes.registry import RemoteDefinition, RemoteRegistry
from remotes.resolvers import ResolvedRemote


class FakeResolver:
    """Resolver serving in-memory modules, optionally failing first."""

    def __init__(self, modules: dict, version: str = "1.0.0"):
        self.modules = modules
        self.version = version
        self.failures: list[Exception] = []
        self.calls = 0
        self.gate = None

    async def resolve(self, definition, exposed_module):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.failures:
            raise self.failures.pop(0)
        return ResolvedRemote(module=self.modules[exposed_module], version=self.version)


class Handle:
    def __init__(self, context):
        self.context = context
        self.unmounted = False

    def unmount(self):
        self.unmounted = True


def make_module(name: str, mount=None) -> types.ModuleType:
    module = types.ModuleType(name)
    if mount is not None:
        module.mount = mount
    return module


@pytest.fixture
def registry() -> RemoteRegistry:
    return RemoteRegistry([RemoteDefinition(name="cart", entry="http://cart.test/remoteEntry.json", package="widgets")])


@pytest.fixture
def context() -> object:
    return object()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver({
        "badge": make_module("badge", Handle),
        "no_mount": make_module("no_mount"),
        "broken": make_module("broken", lambda ctx: 1 / 0),
    })


@pytest.fixture
def loader(registry, resolver, context, bus: EventBus) -> RemoteLoader:
    return RemoteLoader(registry, context_provider=lambda: context, resolver=resolver, event_bus=bus)


@pytest.fixture
def lifecycle(bus: EventBus) -> list:
    events = []
    bus.subscribe("remote:mounted", lambda p: events.append(("mounted", p)))
    bus.subscribe("remote:failed", lambda p: events.append(("failed", p)))
    return events


class TestLoad:
    """Tests for successful loads."""

    def test_load_mounts_with_context(self, loader: RemoteLoader, context, lifecycle):
        result = asyncio.run(loader.load("cart", "badge"))

        assert isinstance(result, Mounted)
        assert result.handle.context is context
        assert loader.mount_point("cart", "badge").status == MountStatus.MOUNTED
        assert lifecycle == [("mounted", {"remote": "cart", "module": "badge"})]

    def test_second_load_reuses_mount(self, loader: RemoteLoader, resolver):
        async def scenario():
            return await loader.load("cart", "badge"), await loader.load("cart", "badge")

        first, second = asyncio.run(scenario())

        assert first is second
        assert resolver.calls == 1

    def test_concurrent_loads_share_one_attempt(self, loader: RemoteLoader, resolver):
        async def scenario():
            return await asyncio.gather(loader.load("cart", "badge"), loader.load("cart", "badge"))

        first, second = asyncio.run(scenario())

        assert first is second
        assert resolver.calls == 1

    def test_placeholder_while_loading(self, loader: RemoteLoader, resolver):
        async def scenario():
            resolver.gate = asyncio.Event()
            pending = asyncio.create_task(loader.load("cart", "badge"))
            await asyncio.sleep(0)
            point = loader.mount_point("cart", "badge")
            status, placeholder = point.status, point.placeholder
            resolver.gate.set()
            await pending
            return status, placeholder, point.placeholder

        status, placeholder, after = asyncio.run(scenario())

        assert status == MountStatus.LOADING
        assert placeholder == "Loading cart…"
        assert after is None

    def test_cancelled_caller_does_not_start_second_attempt(self, loader: RemoteLoader, resolver, lifecycle):
        async def scenario():
            resolver.gate = asyncio.Event()
            first = asyncio.create_task(loader.load("cart", "badge"))
            await asyncio.sleep(0)
            first.cancel()
            with pytest.raises(asyncio.CancelledError):
                await first
            second = asyncio.create_task(loader.load("cart", "badge"))
            await asyncio.sleep(0)
            resolver.gate.set()
            return await second

        result = asyncio.run(scenario())

        assert isinstance(result, Mounted)
        assert resolver.calls == 1
        assert loader.mount_point("cart", "badge").handle is result.handle
        assert len(lifecycle) == 1

    def test_async_mount(self, registry, context):
        async def mount(ctx):
            await asyncio.sleep(0)
            return "handle"

        loader = RemoteLoader(registry, lambda: context, resolver=FakeResolver({"m": make_module("m", mount)}))

        result = asyncio.run(loader.load("cart", "m"))

        assert result.handle == "handle"


class TestFailures:
    """Tests for contained failures."""

    def test_unknown_remote(self, loader: RemoteLoader, lifecycle):
        result = asyncio.run(loader.load("reviews", "list"))

        assert isinstance(result, Failed)
        assert result.reason == "unknown remote"
        assert lifecycle == [("failed", {"remote": "reviews", "module": "list", "reason": "unknown remote"})]

    def test_missing_mount_export(self, loader: RemoteLoader):
        result = asyncio.run(loader.load("cart", "no_mount"))

        assert isinstance(result, Failed)
        assert "mount()" in result.reason

    def test_exception_inside_mount(self, loader: RemoteLoader):
        result = asyncio.run(loader.load("cart", "broken"))

        assert isinstance(result, Failed)
        assert result.reason.startswith("mount failed")
        assert loader.mount_point("cart", "broken").status == MountStatus.FAILED

    def test_unexpected_resolver_error(self, loader: RemoteLoader, resolver):
        resolver.failures.append(KeyError("boom"))

        result = asyncio.run(loader.load("cart", "badge"))

        assert isinstance(result, Failed)
        assert result.reason.startswith("unexpected error")

    def test_incompatible_version(self, registry, context):
        resolver = FakeResolver({"badge": make_module("badge", Handle)}, version="2.1.0")
        loader = RemoteLoader(registry, lambda: context, resolver=resolver, host_version="1.4.0")

        result = asyncio.run(loader.load("cart", "badge"))

        assert isinstance(result, Failed)
        assert "incompatible version 2.1.0" in result.reason

    def test_failed_load_is_not_retried_implicitly(self, loader: RemoteLoader, resolver):
        resolver.failures.append(ConnectionError("offline"))

        async def scenario():
            return await loader.load("cart", "badge"), await loader.load("cart", "badge")

        first, second = asyncio.run(scenario())

        assert isinstance(first, Failed)
        assert second is first
        assert resolver.calls == 1

    def test_one_failure_does_not_affect_other_remotes(self, loader: RemoteLoader):
        async def scenario():
            return await loader.load("cart", "broken"), await loader.load("cart", "badge")

        broken, badge = asyncio.run(scenario())

        assert isinstance(broken, Failed)
        assert isinstance(badge, Mounted)


class TestRetryAndUnmount:
    """Tests for the rest of the state machine."""

    def test_retry_after_failure(self, loader: RemoteLoader, resolver, lifecycle):
        resolver.failures.append(ConnectionError("offline"))

        async def scenario():
            failed = await loader.load("cart", "badge")
            retried = await loader.retry("cart", "badge")
            return failed, retried

        failed, retried = asyncio.run(scenario())

        assert isinstance(failed, Failed)
        assert isinstance(retried, Mounted)
        assert loader.mount_point("cart", "badge").attempts == 2
        assert [kind for kind, _ in lifecycle] == ["failed", "mounted"]

    def test_retry_when_not_failed_just_loads(self, loader: RemoteLoader, resolver):
        async def scenario():
            await loader.load("cart", "badge")
            return await loader.retry("cart", "badge")

        result = asyncio.run(scenario())

        assert isinstance(result, Mounted)
        assert resolver.calls == 1

    def test_unmount_calls_handle_and_returns_to_idle(self, loader: RemoteLoader):
        result = asyncio.run(loader.load("cart", "badge"))

        loader.unmount("cart", "badge")

        assert result.handle.unmounted is True
        assert loader.mount_point("cart", "badge").status == MountStatus.IDLE

    def test_mount_again_after_unmount(self, loader: RemoteLoader, resolver):
        async def scenario():
            await loader.load("cart", "badge")
            loader.unmount("cart", "badge")
            return await loader.load("cart", "badge")

        assert isinstance(asyncio.run(scenario()), Mounted)
        assert resolver.calls == 2

    def test_failing_unmount_is_logged(self, registry, context, caplog):
        class BadHandle:
            def unmount(self):
                raise RuntimeError("teardown bug")

        loader = RemoteLoader(registry, lambda: context, resolver=FakeResolver({"m": make_module("m", lambda c: BadHandle())}))
        asyncio.run(loader.load("cart", "m"))

        with caplog.at_level("ERROR", logger="remote_loader"):
            loader.unmount("cart", "m")

        assert "teardown bug" in caplog.text
        assert loader.mount_point("cart", "m").status == MountStatus.IDLE

    def test_release_forgets_mount_point(self, loader: RemoteLoader):
        asyncio.run(loader.load("cart", "badge"))

        loader.release("cart", "badge")

        assert loader.statuses() == {}

    def test_statuses(self, loader: RemoteLoader):
        async def scenario():
            await loader.load("cart", "badge")
            await loader.load("cart", "broken")

        asyncio.run(scenario())

        assert loader.statuses() == {"cart/badge": "mounted", "cart/broken": "failed"}


@pytest.mark.parametrize("host,remote,expected", [
    ("1.0.0", "1.9.3", True),
    ("1.0.0", "2.0.0", False),
    ("2.0", "2", True),
    ("1.0.0", "latest", False),
])
def test_is_compatible(host, remote, expected):
    assert is_compatible(host, remote) is expected
