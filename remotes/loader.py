"""
Remote loader: resolve a remote's exposed module and mount it, in isolation.

Each (remote, module) pair gets a mount point with its own state machine:

    IDLE -> LOADING -> MOUNTED
                    -> FAILED -> (retry) -> LOADING -> ...
    MOUNTED -> (unmount) -> IDLE

A remote module exposes `mount(context)`, which receives the host context
(store, event bus, query client, services) and returns a handle. If the handle
has an `unmount()` method it is called when the host unmounts the remote.

Any failure along the way, whether an unknown remote, a network error, a
missing export, an incompatible version, or an exception raised inside
`mount`, ends in the FAILED state with a Failed value. Nothing propagates to
the host.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from messaging.event_bus import EventBus
from messaging.events import EventNames, remote_failed, remote_mounted
from remotes.registry import RemoteRegistry
from remotes.resolvers import ImportResolver, RemoteResolver
from shared.errors import RemoteLoadError

logger = logging.getLogger("remote_loader")


class MountStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    MOUNTED = "mounted"
    FAILED = "failed"


@dataclass(frozen=True)
class Mounted:
    remote: str
    module: str
    handle: Any


@dataclass(frozen=True)
class Failed:
    remote: str
    module: str
    error: RemoteLoadError

    @property
    def reason(self) -> str:
        return self.error.reason


LoadResult = Union[Mounted, Failed]


def is_compatible(host_version: str, remote_version: str) -> bool:
    """Same major version means compatible."""
    try:
        return int(host_version.split(".")[0]) == int(remote_version.split(".")[0])
    except (ValueError, IndexError):
        return False


class MountPoint:
    """
    Where one remote module lives in the host.

    Attributes:
        status: Current MountStatus
        result: Last Mounted/Failed value (None while idle or loading)
        attempts: How many times loading was attempted
    """

    def __init__(self, loader: "RemoteLoader", remote: str, module: str):
        self.loader = loader
        self.remote = remote
        self.module = module
        self.status = MountStatus.IDLE
        self.result: Optional[LoadResult] = None
        self.attempts = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def placeholder(self) -> Optional[str]:
        """Pending indicator shown while loading."""
        if self.status == MountStatus.LOADING:
            return f"Loading {self.remote}…"
        return None

    @property
    def handle(self) -> Any:
        return self.result.handle if isinstance(self.result, Mounted) else None

    def _transition(self, status: MountStatus) -> None:
        logger.debug(f"{self.remote}/{self.module}: {self.status.value} -> {status.value}")
        self.status = status

    async def load(self) -> LoadResult:
        # Join an attempt still in flight, even if the caller that started it went away
        if self._task is not None and not self._task.done():
            return await asyncio.shield(self._task)
        if self.status == MountStatus.MOUNTED:
            return self.result
        if self.status == MountStatus.FAILED:
            return self.result
        return await self._start()

    async def retry(self) -> LoadResult:
        if self.status != MountStatus.FAILED:
            logger.warning(f"Retry ignored for {self.remote}/{self.module} in state {self.status.value}")
            return await self.load()
        return await self._start()

    async def _start(self) -> LoadResult:
        self._transition(MountStatus.LOADING)
        self.result = None
        self.attempts += 1
        self._task = asyncio.get_running_loop().create_task(self.loader._resolve_and_mount(self))
        return await asyncio.shield(self._task)

    def _settle(self, result: LoadResult) -> LoadResult:
        self._task = None
        self.result = result
        self._transition(MountStatus.MOUNTED if isinstance(result, Mounted) else MountStatus.FAILED)
        return result

    def unmount(self) -> None:
        """Tear down a mounted remote. Errors from the remote are logged."""
        if self.status != MountStatus.MOUNTED:
            return
        unmount = getattr(self.handle, "unmount", None)
        if callable(unmount):
            try:
                unmount()
            except Exception as e:
                logger.error(f"Error unmounting {self.remote}/{self.module}: {e!r}")
        self.result = None
        self._transition(MountStatus.IDLE)


class RemoteLoader:
    """
    Loads and mounts remotes for the host.

    Example:
        loader = RemoteLoader(registry, context_provider=lambda: host)
        result = await loader.load("cart", "cart_badge")
        if isinstance(result, Failed):
            show_retry_button(result.reason)
    """

    def __init__(
        self,
        registry: RemoteRegistry,
        context_provider: Callable[[], Any],
        resolver: Optional[RemoteResolver] = None,
        event_bus: Optional[EventBus] = None,
        host_version: str = "1.0.0",
    ):
        """
        Args:
            registry: Known remotes
            context_provider: Returns the object passed to each remote's mount()
            resolver: How modules are located (ImportResolver by default)
            event_bus: Where remote:mounted / remote:failed are announced
            host_version: Remotes with a different major version are refused
        """
        self.registry = registry
        self.context_provider = context_provider
        self.resolver = resolver or ImportResolver()
        self.event_bus = event_bus
        self.host_version = host_version
        self._mount_points: dict[tuple[str, str], MountPoint] = {}

    def mount_point(self, remote: str, module: str) -> MountPoint:
        key = (remote, module)
        if key not in self._mount_points:
            self._mount_points[key] = MountPoint(self, remote, module)
        return self._mount_points[key]

    async def load(self, remote_name: str, exposed_module: str) -> LoadResult:
        """Resolve and mount a remote module. Never raises."""
        return await self.mount_point(remote_name, exposed_module).load()

    async def retry(self, remote_name: str, exposed_module: str) -> LoadResult:
        """Re-attempt a failed load."""
        return await self.mount_point(remote_name, exposed_module).retry()

    def unmount(self, remote_name: str, exposed_module: str) -> None:
        point = self._mount_points.get((remote_name, exposed_module))
        if point is not None:
            point.unmount()

    def release(self, remote_name: str, exposed_module: str) -> None:
        """The host navigated away: unmount if needed and forget the mount point."""
        point = self._mount_points.pop((remote_name, exposed_module), None)
        if point is not None:
            point.unmount()

    def unmount_all(self) -> None:
        for point in list(self._mount_points.values()):
            point.unmount()

    def statuses(self) -> dict[str, str]:
        return {f"{r}/{m}": point.status.value for (r, m), point in self._mount_points.items()}

    async def _resolve_and_mount(self, point: MountPoint) -> LoadResult:
        try:
            handle = await self._mount(point.remote, point.module)
        except RemoteLoadError as e:
            return self._fail(point, e)
        except Exception as e:
            return self._fail(point, RemoteLoadError(point.remote, point.module, f"unexpected error: {e!r}"))

        result = point._settle(Mounted(remote=point.remote, module=point.module, handle=handle))
        logger.info(f"Mounted {point.remote}/{point.module}")
        if self.event_bus is not None:
            self.event_bus.publish(EventNames.REMOTE_MOUNTED, remote_mounted(point.remote, point.module))
        return result

    async def _mount(self, remote: str, module: str) -> Any:
        definition = self.registry.get(remote)
        if definition is None:
            raise RemoteLoadError(remote, module, "unknown remote")

        resolved = await self.resolver.resolve(definition, module)
        if not is_compatible(self.host_version, resolved.version):
            raise RemoteLoadError(
                remote, module,
                f"incompatible version {resolved.version} (host {self.host_version})",
            )

        mount = getattr(resolved.module, "mount", None)
        if not callable(mount):
            raise RemoteLoadError(remote, module, "module does not export mount()")

        try:
            handle = mount(self.context_provider())
            if inspect.isawaitable(handle):
                handle = await handle
        except Exception as e:
            raise RemoteLoadError(remote, module, f"mount failed: {e!r}") from e
        return handle

    def _fail(self, point: MountPoint, error: RemoteLoadError) -> LoadResult:
        logger.error(f"Error loading {point.remote}/{point.module}: {error.reason}")
        result = point._settle(Failed(remote=point.remote, module=point.module, error=error))
        if self.event_bus is not None:
            self.event_bus.publish(
                EventNames.REMOTE_FAILED,
                remote_failed(point.remote, point.module, error.reason),
            )
        return result
