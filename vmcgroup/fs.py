"""
vmcgroup Filesystem Interface
The I/O seam between cgroup logic and the kernel's cgroup filesystem
"""

import logging
import os
from abc import ABC, abstractmethod
from collections import namedtuple
from typing import List

import psutil

logger = logging.getLogger('vmcgroup.fs')

# Same field layout as psutil's sdiskpart
MountEntry = namedtuple('MountEntry', ['device', 'mountpoint', 'fstype', 'opts'])


class CgroupFS(ABC):
    """Filesystem operations needed to manage cgroups

    Implementations raise OSError exactly as the corresponding os calls
    would; translation into CgroupError happens in the callers.
    """

    @abstractmethod
    def mounts(self) -> List[MountEntry]:
        """List every mounted filesystem"""

    @abstractmethod
    def read(self, path: str) -> str:
        pass

    @abstractmethod
    def write(self, path: str, data: str) -> None:
        pass

    @abstractmethod
    def mkdir(self, path: str) -> bool:
        """Create a directory; returns False if it already existed"""

    @abstractmethod
    def rmdir(self, path: str) -> None:
        pass

    @abstractmethod
    def isdir(self, path: str) -> bool:
        pass

    @abstractmethod
    def is_writable(self, path: str) -> bool:
        pass

    @abstractmethod
    def stat(self, path: str):
        pass


class HostCgroupFS(CgroupFS):
    """Cgroup filesystem of the running host"""

    # All instances describe the same host and share one discovery result
    def __eq__(self, other):
        return isinstance(other, HostCgroupFS)

    def __hash__(self):
        return hash(HostCgroupFS)

    def mounts(self) -> List[MountEntry]:
        return [MountEntry(p.device, p.mountpoint, p.fstype, p.opts)
                for p in psutil.disk_partitions(all=True)]

    def read(self, path: str) -> str:
        with open(path, 'r') as f:
            return f.read()

    def write(self, path: str, data: str) -> None:
        # Control files act on each write(2); one write per value.
        # No O_CREAT: a missing control file must fail with ENOENT.
        fd = os.open(path, os.O_WRONLY)
        try:
            os.write(fd, data.encode())
        finally:
            os.close(fd)
        logger.debug(f"Wrote {data!r} to {path}")

    def mkdir(self, path: str) -> bool:
        try:
            os.mkdir(path, 0o755)
        except FileExistsError:
            if not os.path.isdir(path):
                raise
            return False
        return True

    def rmdir(self, path: str) -> None:
        os.rmdir(path)

    def isdir(self, path: str) -> bool:
        return os.path.isdir(path)

    def is_writable(self, path: str) -> bool:
        return os.access(path, os.W_OK)

    def stat(self, path: str):
        return os.stat(path)
