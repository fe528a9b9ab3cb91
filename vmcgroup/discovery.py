"""
vmcgroup Hierarchy Discovery
Locates the mounted cgroup v1 controllers of the host
"""

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, Iterator, List, Set

from cachetools import LRUCache

from .controllers import Controller
from .errors import UnsupportedControllerError
from .fs import CgroupFS

logger = logging.getLogger('vmcgroup.discovery')


@dataclass(frozen=True)
class ControllerMount:
    """A controller and the root it is mounted at"""
    controller: Controller
    mountpoint: str
    writable: bool = True


class CgroupMounts(Mapping):
    """Read-only map of controller -> ControllerMount

    Controllers that are not mounted are simply absent. Several
    controllers can share one mountpoint when they are co-mounted.
    """

    def __init__(self, mounts: Dict[Controller, ControllerMount]):
        self._mounts = dict(mounts)

    def __getitem__(self, controller: Controller) -> ControllerMount:
        return self._mounts[controller]

    def __iter__(self) -> Iterator[Controller]:
        return iter(self._mounts)

    def __len__(self) -> int:
        return len(self._mounts)

    def __repr__(self) -> str:
        entries = ", ".join(f"{c.value}={m.mountpoint}" for c, m in self._mounts.items())
        return f"CgroupMounts({entries})"

    def is_available(self, controller: Controller) -> bool:
        return controller in self._mounts

    def mountpoint(self, controller: Controller) -> str:
        """Mount root of `controller`, or UnsupportedControllerError"""
        try:
            return self._mounts[controller].mountpoint
        except KeyError:
            raise UnsupportedControllerError(f"Controller {controller.value} is not mounted",
                                             controller=controller.value) from None

    def unavailable(self) -> Set[Controller]:
        return set(Controller) - set(self._mounts)

    def roots(self) -> Dict[str, List[Controller]]:
        """Distinct mount roots and the controllers mounted at each"""
        roots: Dict[str, List[Controller]] = {}
        for controller, mount in self._mounts.items():
            roots.setdefault(mount.mountpoint, []).append(controller)
        return roots


def discover_mounts(fs: CgroupFS) -> CgroupMounts:
    """Build the controller map from the host's mount table"""
    found: Dict[Controller, ControllerMount] = {}

    for entry in fs.mounts():
        if entry.fstype != 'cgroup':
            if entry.fstype == 'cgroup2':
                logger.debug(f"Ignoring unified hierarchy at {entry.mountpoint}")
            continue

        opts = entry.opts.split(',')
        controllers = []
        for opt in opts:
            try:
                controllers.append(Controller(opt))
            except ValueError:
                continue
        if not controllers:
            # Named hierarchies such as name=systemd
            continue

        writable = 'ro' not in opts and fs.is_writable(entry.mountpoint)
        if not writable:
            logger.warning(f"Cgroup mount {entry.mountpoint} is not writable")

        for controller in controllers:
            if controller in found:
                logger.debug(f"Controller {controller.value} also mounted at "
                             f"{entry.mountpoint}, keeping {found[controller].mountpoint}")
                continue
            found[controller] = ControllerMount(controller, entry.mountpoint, writable)

    mounts = CgroupMounts(found)
    missing = sorted(c.value for c in mounts.unavailable())
    logger.info(f"Discovered cgroup controllers: {mounts!r}"
                + (f"; unavailable: {', '.join(missing)}" if missing else ""))
    return mounts


_mount_cache = LRUCache(maxsize=16)
_mount_lock = threading.RLock()


def get_mounts(fs: CgroupFS) -> CgroupMounts:
    """Discovered mounts for `fs`, running discovery on first use only"""
    with _mount_lock:
        mounts = _mount_cache.get(fs)
        if mounts is None:
            mounts = discover_mounts(fs)
            _mount_cache[fs] = mounts
        return mounts


def rediscover(fs: CgroupFS) -> CgroupMounts:
    """Drop the cached mounts for `fs` and discover again"""
    with _mount_lock:
        _mount_cache.pop(fs, None)
        return get_mounts(fs)
