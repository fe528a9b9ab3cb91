"""
vmcgroup Cgroup Handle
One cgroup (a placement) across the controllers it spans
"""

import logging
import posixpath
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from .config import CgroupConfig
from .controllers import (
    Controller, CpuacctController, CpuController, DevicesController, MemoryController
)
from .discovery import CgroupMounts
from .errors import (
    CgroupError, HandleReleasedError, InvalidArgumentError,
    UnsupportedControllerError, from_os_error
)
from .fs import CgroupFS

logger = logging.getLogger('vmcgroup.handle')


def _label(controllers: Iterable[Controller]) -> str:
    return ",".join(c.value for c in controllers)


class CgroupHandle:
    """A resolved cgroup

    Handles are created by CgroupManager.resolve_driver() and
    CgroupManager.resolve_domain(). They borrow the discovered mount map
    and the configuration of the manager that resolved them, and are
    owned by the caller that resolved them until release().
    Operations on one handle are not synchronised; callers serialise
    access per domain.

    Used as a context manager the handle is released on exit, whether or
    not the block raised.
    """

    def __init__(self, fs: CgroupFS, mounts: CgroupMounts, placement: Tuple[str, ...],
                 controllers: Iterable[Controller], created: bool = False,
                 privileged: bool = True, config: Optional[CgroupConfig] = None):
        self.fs = fs
        self.mounts = mounts
        self.config = config or CgroupConfig()
        self.placement = tuple(placement)
        self.controllers: FrozenSet[Controller] = frozenset(controllers)
        self.created = created
        self.privileged = privileged
        self._released = False
        self._removed = False

        self.memory = MemoryController(self)
        self.devices = DevicesController(self)
        self.cpu = CpuController(self)
        self.cpuacct = CpuacctController(self)

    def __repr__(self) -> str:
        state = "released" if self._released else ("removed" if self._removed else "live")
        return (f"CgroupHandle(placement={self.relative_path!r}, "
                f"controllers={_label(sorted(self.controllers, key=lambda c: c.value))!r}, {state})")

    def __enter__(self) -> "CgroupHandle":
        self._check_live()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    @property
    def name(self) -> str:
        return self.placement[-1]

    @property
    def relative_path(self) -> str:
        return "/".join(self.placement)

    @property
    def released(self) -> bool:
        return self._released

    def _check_live(self) -> None:
        if self._released:
            raise HandleReleasedError(f"Cgroup handle {self.relative_path} has been released")
        if self._removed:
            raise HandleReleasedError(f"Cgroup {self.relative_path} has been removed")

    def spans(self, controller: Controller) -> bool:
        return controller in self.controllers

    def path(self, controller: Controller) -> str:
        """Absolute directory of this cgroup under `controller`"""
        self._check_live()
        if controller not in self.controllers:
            if not self.mounts.is_available(controller):
                reason = "is not mounted on this host"
            else:
                reason = f"is not attached to cgroup {self.relative_path}"
            raise UnsupportedControllerError(f"Controller {controller.value} {reason}",
                                             controller=controller.value)
        return posixpath.join(self.mounts.mountpoint(controller), *self.placement)

    def roots(self) -> Dict[str, List[Controller]]:
        """Distinct directories of this cgroup, with the controllers sharing each"""
        dirs: Dict[str, List[Controller]] = {}
        for mountpoint, controllers in self.mounts.roots().items():
            spanned = [c for c in controllers if c in self.controllers]
            if spanned:
                dirs[posixpath.join(mountpoint, *self.placement)] = spanned
        return dirs

    def read_value(self, controller: Controller, filename: str) -> str:
        path = posixpath.join(self.path(controller), filename)
        try:
            return self.fs.read(path).strip()
        except OSError as e:
            raise from_os_error(e, "read", controller.value, path) from e

    def write_value(self, controller: Controller, filename: str, value: str) -> None:
        path = posixpath.join(self.path(controller), filename)
        logger.debug(f"Setting {filename}={value!r} on {self.relative_path}")
        try:
            self.fs.write(path, value)
        except OSError as e:
            raise from_os_error(e, "write", controller.value, path) from e

    def add_task(self, pid: int) -> None:
        """Move `pid` into this cgroup under every controller it spans

        Each hierarchy is attempted even if an earlier one failed; the
        first failure is raised once all have been tried.
        """
        self._check_live()
        if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
            raise InvalidArgumentError(f"Invalid process id: {pid!r}")

        first_error: Optional[CgroupError] = None
        for directory, controllers in self.roots().items():
            path = posixpath.join(directory, "tasks")
            try:
                self.fs.write(path, str(pid))
            except OSError as e:
                error = from_os_error(e, f"add task {pid} to", _label(controllers), path)
                logger.warning(str(error))
                if first_error is None:
                    first_error = error

        if first_error is not None:
            logger.error(f"Process {pid} only partially added to cgroup {self.relative_path}")
            raise first_error
        logger.info(f"Added process {pid} to cgroup {self.relative_path}")

    def get_tasks(self) -> List[int]:
        """Task ids found in this cgroup across all spanned hierarchies"""
        self._check_live()
        tasks = set()
        for directory, controllers in self.roots().items():
            path = posixpath.join(directory, "tasks")
            try:
                data = self.fs.read(path)
            except OSError as e:
                raise from_os_error(e, "read", _label(controllers), path) from e
            tasks.update(int(tid) for tid in data.split() if tid.isdigit())
        return sorted(tasks)

    def remove(self) -> None:
        """Delete this cgroup's directories

        A cgroup that still has tasks or children cannot be removed; the
        resulting CgroupBusyError is raised after every hierarchy has been
        attempted, and the handle stays usable. After a successful remove
        only release() is allowed.
        """
        self._check_live()

        first_error: Optional[CgroupError] = None
        for directory, controllers in self.roots().items():
            try:
                self.fs.rmdir(directory)
            except FileNotFoundError:
                logger.debug(f"Cgroup directory {directory} already removed")
            except OSError as e:
                error = from_os_error(e, "remove", _label(controllers), directory)
                logger.warning(str(error))
                if first_error is None:
                    first_error = error

        if first_error is not None:
            logger.error(f"Failed to remove cgroup {self.relative_path}")
            raise first_error

        self._removed = True
        logger.info(f"Removed cgroup {self.relative_path}")

    def release(self) -> None:
        """Invalidate the handle; never fails and may be repeated"""
        if not self._released:
            self._released = True
            logger.debug(f"Released cgroup handle {self.relative_path}")

