"""Tracking of loop devices and mount points attached by a build.

Each handle is only marked attached after the host operation that acquired it
succeeded, and only marked unused after the release operation succeeded. The
recorded state therefore always matches what is active on the host, which
makes teardown safe to call from any point of the build.
"""

from typing import Callable, Dict, List, Optional

from .errors import ImageBuildError, ResourceError
from .log import debug, warn

UNUSED = "unused"
ATTACHED = "attached"

ROLES = ("firmware", "data", "root")


class ResourceHandle:
    """A single loop device or mount point owned by the build"""

    def __init__(self, role: str, kind: str):
        self.role = role
        self.kind = kind
        self.path: Optional[str] = None

    @property
    def state(self) -> str:
        return ATTACHED if self.path else UNUSED

    @property
    def attached(self) -> bool:
        return self.path is not None

    def attach(self, path: str) -> None:
        if self.attached:
            raise ResourceError(f"{self.role} {self.kind} already attached at {self.path}")
        self.path = path

    def release(self, releaser: Callable[[str], None]) -> bool:
        """Run ``releaser`` on the attached path; a no-op when unused"""
        if not self.attached:
            return False
        releaser(self.path)
        self.path = None
        return True

    def __repr__(self):
        return f"<{self.role} {self.kind}: {self.state}{' ' + self.path if self.path else ''}>"


class ResourceSet:
    """The three loop devices and three mount points of one build"""

    def __init__(self):
        self.loops: Dict[str, ResourceHandle] = {role: ResourceHandle(role, "loop") for role in ROLES}
        self.mounts: Dict[str, ResourceHandle] = {role: ResourceHandle(role, "mount") for role in ROLES}
        # acquisition order, per kind
        self._loop_order: List[str] = []
        self._mount_order: List[str] = []

    def attach_loop(self, role: str, device: str) -> None:
        self.loops[role].attach(device)
        self._loop_order.append(role)
        debug(f"Attached {role} loop device {device}")

    def attach_mount(self, role: str, mount_point: str) -> None:
        self.mounts[role].attach(mount_point)
        self._mount_order.append(role)
        debug(f"Mounted {role} at {mount_point}")

    def loop(self, role: str) -> str:
        return self.loops[role].path

    def mount_point(self, role: str) -> str:
        return self.mounts[role].path

    def attached(self) -> List[ResourceHandle]:
        return [h for h in list(self.mounts.values()) + list(self.loops.values()) if h.attached]

    def all_unused(self) -> bool:
        return not self.attached()

    def unmount_all(self, umount: Callable[[str], None], strict: bool = True) -> None:
        self._release(self.mounts, self._mount_order, umount, strict)

    def detach_all(self, detach: Callable[[str], None], strict: bool = True) -> None:
        self._release(self.loops, self._loop_order, detach, strict)

    def _release(self, handles, order, releaser, strict):
        for role in reversed(list(order)):
            handle = handles[role]
            path = handle.path
            try:
                if handle.release(releaser):
                    debug(f"Released {role} {handle.kind} {path}")
            except ImageBuildError as e:
                if strict:
                    raise
                warn(f"Failed to release {role} {handle.kind} {path}: {e}")
                continue
            order.remove(role)
