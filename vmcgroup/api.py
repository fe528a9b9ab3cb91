"""
vmcgroup Public API
Flat functions for hypervisor driver backends

Every function raises a CgroupError subclass on failure, except
release_handle() which never fails. Using a handle after release_handle()
raises HandleReleasedError.
"""

from typing import Iterable, List, Optional, Union

from .controllers import DeviceType
from .discovery import CgroupMounts
from .handle import CgroupHandle
from .manager import CgroupManager, get_cgroup_manager


def resolve_driver_cgroup(driver_name: str, privileged: bool = True, create: bool = False,
                          manager: Optional[CgroupManager] = None) -> CgroupHandle:
    manager = manager or get_cgroup_manager()
    return manager.resolve_driver(driver_name, privileged=privileged, create=create)


def resolve_domain_cgroup(driver: CgroupHandle, domain_name: str, create: bool = False,
                          manager: Optional[CgroupManager] = None) -> CgroupHandle:
    manager = manager or get_cgroup_manager()
    return manager.resolve_domain(driver, domain_name, create=create)


def add_task(handle: CgroupHandle, pid: int) -> None:
    handle.add_task(pid)


def get_tasks(handle: CgroupHandle) -> List[int]:
    return handle.get_tasks()


def set_memory_limit_kb(handle: CgroupHandle, kb: int) -> None:
    handle.memory.set_limit_kb(kb)


def get_memory_limit_kb(handle: CgroupHandle) -> int:
    return handle.memory.get_limit_kb()


def get_memory_usage(handle: CgroupHandle) -> int:
    """Current memory usage in bytes"""
    return handle.memory.get_usage()


def deny_all_devices(handle: CgroupHandle) -> None:
    handle.devices.deny_all()


def allow_device(handle: CgroupHandle, device_type: Union[str, DeviceType],
                 major: int, minor: int, perms: str = "rwm") -> None:
    handle.devices.allow(device_type, major, minor, perms)


def allow_device_major(handle: CgroupHandle, device_type: Union[str, DeviceType],
                       major: int, perms: str = "rwm") -> None:
    handle.devices.allow_major(device_type, major, perms)


def allow_device_path(handle: CgroupHandle, path: str, perms: str = "rwm") -> None:
    handle.devices.allow_path(path, perms)


def list_devices(handle: CgroupHandle) -> List[str]:
    return handle.devices.get_list()


def apply_device_acl(handle: CgroupHandle, acl: Optional[Iterable[str]] = None,
                     manager: Optional[CgroupManager] = None) -> List[str]:
    """Deny all devices, then allow the configured ACL

    Settings come from `manager` when given, otherwise from the manager
    that resolved `handle`. `acl` defaults to the configured device_acl.
    """
    config = manager.config if manager is not None else handle.config
    paths = config.device_acl if acl is None else acl
    return handle.devices.apply_acl(paths, perms=config.device_perms,
                                    allow_ptys=config.allow_ptys)


def set_cpu_shares(handle: CgroupHandle, shares: int) -> None:
    handle.cpu.set_shares(shares)


def get_cpu_shares(handle: CgroupHandle) -> int:
    return handle.cpu.get_shares()


def get_cpuacct_usage(handle: CgroupHandle) -> int:
    """Cumulative CPU time in nanoseconds"""
    return handle.cpuacct.get_usage()


def remove_cgroup(handle: CgroupHandle) -> None:
    handle.remove()


def release_handle(handle: Optional[CgroupHandle]) -> None:
    if handle is not None:
        handle.release()


def rediscover(manager: Optional[CgroupManager] = None) -> CgroupMounts:
    return (manager or get_cgroup_manager()).rediscover()
