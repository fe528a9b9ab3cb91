"""
vmcgroup Resource Controllers
Memory, devices, CPU share and CPU accounting policies bound to a handle
"""

import logging
import os
import stat
from enum import Enum
from typing import Iterable, List, Union

from .errors import CgroupNotFoundError, InvalidArgumentError, from_os_error

logger = logging.getLogger('vmcgroup.controllers')


class Controller(Enum):
    """Cgroup v1 controllers managed for virtual machines"""
    CPU = "cpu"
    CPUACCT = "cpuacct"
    CPUSET = "cpuset"
    MEMORY = "memory"
    DEVICES = "devices"

    @classmethod
    def parse(cls, value: Union[str, "Controller"]) -> "Controller":
        """Validate a controller name, rejecting anything unknown"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgumentError(f"Unknown cgroup controller: {value!r}") from None


class DeviceType(Enum):
    """Device node types understood by the devices controller"""
    CHAR = "c"
    BLOCK = "b"

    @classmethod
    def parse(cls, value: Union[str, "DeviceType"]) -> "DeviceType":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgumentError(f"Unknown device type: {value!r}") from None


# Major number of the Unix98 pty slaves
PTY_MAJOR = 136

_VALID_PERMS = frozenset("rwm")


def _check_uint(value, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidArgumentError(f"{what} must be a non-negative integer, got {value!r}")
    return value


def _check_perms(perms: str) -> str:
    if not perms or not isinstance(perms, str) or not set(perms) <= _VALID_PERMS:
        raise InvalidArgumentError(f"Invalid device permissions: {perms!r}")
    return perms


def _parse_int(raw: str, controller: Controller, filename: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise InvalidArgumentError(f"Unparsable value {raw!r} in {controller.value} {filename}",
                                   controller=controller.value) from None


class ResourceController:
    """Base policy bound to one controller of a handle"""

    controller: Controller

    def __init__(self, handle):
        self.handle = handle

    def _read_value(self, filename: str) -> str:
        return self.handle.read_value(self.controller, filename)

    def _write_value(self, filename: str, value) -> None:
        self.handle.write_value(self.controller, filename, str(value))


class MemoryController(ResourceController):
    """Memory limiter; the API speaks KiB, the kernel speaks bytes"""

    controller = Controller.MEMORY

    def set_limit_kb(self, kb: int) -> None:
        """Set memory.limit_in_bytes from a limit in kilobytes"""
        kb = _check_uint(kb, "Memory limit")
        self._write_value("memory.limit_in_bytes", kb << 10)

    def get_limit_kb(self) -> int:
        """Get memory.limit_in_bytes converted to kilobytes"""
        return _parse_int(self._read_value("memory.limit_in_bytes"),
                          self.controller, "memory.limit_in_bytes") >> 10

    def get_usage(self) -> int:
        """Get current memory usage in bytes"""
        return _parse_int(self._read_value("memory.usage_in_bytes"),
                          self.controller, "memory.usage_in_bytes")


class DevicesController(ResourceController):
    """Device access whitelist

    Rules are appended in call order and never deduplicated here; the
    kernel merges identical exceptions on its own.
    """

    controller = Controller.DEVICES

    def deny_all(self) -> None:
        """Deny access to all devices"""
        self._write_value("devices.deny", "a")

    def allow(self, device_type: Union[str, DeviceType], major: int, minor: int,
              perms: str = "rwm") -> None:
        """Allow one device node by exact major:minor"""
        dtype = DeviceType.parse(device_type)
        major = _check_uint(major, "Device major")
        minor = _check_uint(minor, "Device minor")
        self._write_value("devices.allow", f"{dtype.value} {major}:{minor} {_check_perms(perms)}")

    def allow_major(self, device_type: Union[str, DeviceType], major: int,
                    perms: str = "rwm") -> None:
        """Allow every minor of a device major"""
        dtype = DeviceType.parse(device_type)
        major = _check_uint(major, "Device major")
        self._write_value("devices.allow", f"{dtype.value} {major}:* {_check_perms(perms)}")

    def allow_path(self, path: str, perms: str = "rwm") -> None:
        """Allow the device node at `path`"""
        try:
            st = self.handle.fs.stat(path)
        except FileNotFoundError:
            raise CgroupNotFoundError(f"Device node {path} does not exist",
                                      controller=self.controller.value, path=path) from None
        except OSError as e:
            raise from_os_error(e, "stat", self.controller.value, path) from e

        if stat.S_ISCHR(st.st_mode):
            dtype = DeviceType.CHAR
        elif stat.S_ISBLK(st.st_mode):
            dtype = DeviceType.BLOCK
        else:
            raise InvalidArgumentError(f"{path} is not a device node",
                                       controller=self.controller.value, path=path)

        self.allow(dtype, os.major(st.st_rdev), os.minor(st.st_rdev), perms)

    def apply_acl(self, paths: Iterable[str], perms: str = "rwm", allow_ptys: bool = True) -> List[str]:
        """Deny everything, then allow each device in `paths`

        Device nodes missing on this host are skipped. Returns the paths
        that were allowed.
        """
        self.deny_all()

        allowed = []
        for path in paths:
            try:
                self.allow_path(path, perms)
            except CgroupNotFoundError:
                logger.debug(f"Skipping missing device {path}")
                continue
            allowed.append(path)

        if allow_ptys:
            self.allow_major(DeviceType.CHAR, PTY_MAJOR, "rw")

        return allowed

    def get_list(self) -> List[str]:
        """Get device access list"""
        data = self._read_value("devices.list")
        return [line for line in data.split('\n') if line]


class CpuController(ResourceController):
    """CPU share weighter"""

    controller = Controller.CPU

    def set_shares(self, shares: int) -> None:
        shares = _check_uint(shares, "CPU shares")
        self._write_value("cpu.shares", shares)

    def get_shares(self) -> int:
        return _parse_int(self._read_value("cpu.shares"), self.controller, "cpu.shares")


class CpuacctController(ResourceController):
    """CPU accounting reader"""

    controller = Controller.CPUACCT

    def get_usage(self) -> int:
        """Cumulative CPU time of all tasks in nanoseconds"""
        return _parse_int(self._read_value("cpuacct.usage"), self.controller, "cpuacct.usage")
