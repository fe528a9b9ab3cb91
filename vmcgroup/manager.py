"""
vmcgroup Cgroup Manager
Resolves driver and domain cgroups and creates their directories
"""

import logging
import posixpath
import threading
from typing import Iterable, List, Optional, Set, Tuple

from .config import CgroupConfig, load_config
from .controllers import Controller
from .discovery import CgroupMounts, get_mounts, rediscover
from .errors import (
    CgroupError, CgroupNotFoundError, CgroupPermissionError, InvalidArgumentError,
    UnsupportedControllerError, from_os_error
)
from .fs import CgroupFS, HostCgroupFS
from .handle import CgroupHandle, _label

logger = logging.getLogger('vmcgroup.manager')


def _check_name(name: str, what: str) -> str:
    if not isinstance(name, str) or not name or name in ('.', '..') \
            or '/' in name or '\0' in name:
        raise InvalidArgumentError(f"Invalid {what} name: {name!r}")
    return name


class CgroupManager:
    """Entry point for resolving cgroup handles

    The filesystem interface is injected; by default the host's cgroup
    filesystem is used. Mount discovery happens on first use and is
    shared by every manager using the same filesystem interface.
    """

    def __init__(self, fs: Optional[CgroupFS] = None, config: Optional[CgroupConfig] = None,
                 mounts: Optional[CgroupMounts] = None):
        self.fs = fs or HostCgroupFS()
        self.config = config or CgroupConfig()
        self._mounts = mounts

    @property
    def mounts(self) -> CgroupMounts:
        if self._mounts is None:
            self._mounts = get_mounts(self.fs)
        return self._mounts

    def rediscover(self) -> CgroupMounts:
        """Re-read the host's mounts, e.g. after host reconfiguration"""
        self._mounts = rediscover(self.fs)
        return self._mounts

    def resolve_driver(self, driver_name: str, privileged: bool = True,
                       create: bool = False) -> CgroupHandle:
        """Get the top-level cgroup of a hypervisor driver

        With `create`, the directory is made under every mounted and
        managed controller. Non-writable mounts raise
        CgroupPermissionError for a privileged caller and are skipped for
        an unprivileged one.
        """
        placement = (_check_name(driver_name, "driver"),)
        candidates = [c for c in self.mounts if self.config.manages(c)]
        return self._resolve(placement, candidates, create, privileged)

    def resolve_domain(self, driver: CgroupHandle, domain_name: str,
                       create: bool = False) -> CgroupHandle:
        """Get the cgroup of one domain nested under `driver`"""
        driver._check_live()
        if len(driver.placement) != 1:
            raise InvalidArgumentError(f"{driver.relative_path} is not a driver cgroup")
        placement = driver.placement + (_check_name(domain_name, "domain"),)
        return self._resolve(placement, driver.controllers, create, driver.privileged)

    def _resolve(self, placement: Tuple[str, ...], candidates: Iterable[Controller],
                 create: bool, privileged: bool) -> CgroupHandle:
        candidates = set(candidates)

        if create:
            controllers, created = self._make_group(placement, candidates, privileged)
        else:
            controllers, created = self._find_group(placement, candidates), False

        handle = CgroupHandle(self.fs, self.mounts, placement, controllers,
                              created=created, privileged=privileged, config=self.config)
        logger.debug(f"Resolved {handle!r}")
        return handle

    def _roots(self, candidates: Set[Controller]):
        for mountpoint, controllers in self.mounts.roots().items():
            usable = [c for c in controllers if c in candidates]
            if usable:
                yield mountpoint, usable

    def _find_group(self, placement: Tuple[str, ...],
                    candidates: Set[Controller]) -> Set[Controller]:
        found: Set[Controller] = set()
        for mountpoint, controllers in self._roots(candidates):
            path = posixpath.join(mountpoint, *placement)
            if self.fs.isdir(path):
                found.update(controllers)
            else:
                logger.debug(f"Cgroup {path} does not exist, not using {_label(controllers)}")

        if not found:
            raise CgroupNotFoundError(f"Cgroup {'/'.join(placement)} does not exist "
                                      f"under any controller", path="/".join(placement))
        return found

    def _make_group(self, placement: Tuple[str, ...], candidates: Set[Controller],
                    privileged: bool) -> Tuple[Set[Controller], bool]:
        spanned: Set[Controller] = set()
        made: List[str] = []

        try:
            for mountpoint, controllers in self._roots(candidates):
                path = posixpath.join(mountpoint, *placement)
                writable = all(self.mounts[c].writable for c in controllers)

                if not writable:
                    if privileged:
                        raise CgroupPermissionError(
                            f"Cgroup mount {mountpoint} ({_label(controllers)}) is not writable",
                            controller=_label(controllers), path=path)
                    logger.warning(f"Skipping read-only {_label(controllers)} mount "
                                   f"{mountpoint} for unprivileged cgroup")
                    continue

                try:
                    is_new = self.fs.mkdir(path)
                except OSError as e:
                    error = from_os_error(e, "create", _label(controllers), path)
                    if privileged or not isinstance(error, CgroupPermissionError):
                        raise error from e
                    logger.warning(f"{error}; skipping for unprivileged cgroup")
                    continue

                if is_new:
                    made.append(path)
                    self._init_group(path, controllers, is_driver=len(placement) == 1)
                spanned.update(controllers)
        except CgroupError:
            self._rollback(made)
            raise

        if not spanned:
            raise UnsupportedControllerError(
                f"No usable cgroup controllers for {'/'.join(placement)}",
                path="/".join(placement))

        if made:
            logger.info(f"Created cgroup {'/'.join(placement)} ({len(made)} hierarchies)")
        return spanned, bool(made)

    def _init_group(self, path: str, controllers: List[Controller], is_driver: bool) -> None:
        if Controller.CPUSET in controllers:
            # An empty cpuset rejects tasks, so start from the parent's
            parent = posixpath.dirname(path)
            for filename in ("cpuset.cpus", "cpuset.mems"):
                try:
                    value = self.fs.read(posixpath.join(parent, filename)).strip()
                    self.fs.write(posixpath.join(path, filename), value)
                except OSError as e:
                    raise from_os_error(e, f"inherit {filename} for",
                                        Controller.CPUSET.value, path) from e

        if Controller.MEMORY in controllers and is_driver and self.config.use_hierarchy:
            try:
                self.fs.write(posixpath.join(path, "memory.use_hierarchy"), "1")
            except OSError as e:
                logger.warning(f"Could not enable memory.use_hierarchy on {path}: {e}")

    def _rollback(self, made: List[str]) -> None:
        for path in reversed(made):
            try:
                self.fs.rmdir(path)
            except OSError as e:
                logger.warning(f"Failed to clean up cgroup directory {path}: {e}")


_cgroup_manager = None
_manager_lock = threading.Lock()


def get_cgroup_manager() -> CgroupManager:
    """Get the process-wide manager for the host cgroup filesystem"""
    global _cgroup_manager
    with _manager_lock:
        if _cgroup_manager is None:
            _cgroup_manager = CgroupManager(HostCgroupFS(), load_config())
        return _cgroup_manager
