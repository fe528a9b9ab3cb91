"""
vmcgroup - Control group management for virtual machine hosts
"""

from .api import (
    add_task, allow_device, allow_device_major, allow_device_path, apply_device_acl,
    deny_all_devices, get_cpu_shares, get_cpuacct_usage, get_memory_limit_kb,
    get_memory_usage, get_tasks, list_devices, rediscover, release_handle, remove_cgroup,
    resolve_domain_cgroup, resolve_driver_cgroup, set_cpu_shares, set_memory_limit_kb
)
from .config import CgroupConfig, load_config
from .controllers import Controller, DeviceType
from .discovery import CgroupMounts, ControllerMount, discover_mounts
from .errors import (
    CgroupBusyError, CgroupError, CgroupNotFoundError, CgroupPermissionError,
    CgroupWriteError, HandleReleasedError, InvalidArgumentError, UnsupportedControllerError
)
from .fs import CgroupFS, HostCgroupFS
from .handle import CgroupHandle
from .manager import CgroupManager, get_cgroup_manager

__version__ = "1.0.0"

__all__ = [
    'CgroupManager', 'CgroupHandle', 'CgroupConfig', 'CgroupMounts', 'ControllerMount',
    'CgroupFS', 'HostCgroupFS', 'Controller', 'DeviceType',
    'CgroupError', 'UnsupportedControllerError', 'CgroupPermissionError',
    'CgroupNotFoundError', 'CgroupBusyError', 'InvalidArgumentError',
    'CgroupWriteError', 'HandleReleasedError',
    'discover_mounts', 'load_config', 'get_cgroup_manager', 'rediscover',
    'resolve_driver_cgroup', 'resolve_domain_cgroup', 'add_task', 'get_tasks',
    'set_memory_limit_kb', 'get_memory_limit_kb', 'get_memory_usage',
    'deny_all_devices', 'allow_device', 'allow_device_major', 'allow_device_path',
    'list_devices', 'apply_device_acl', 'set_cpu_shares', 'get_cpu_shares',
    'get_cpuacct_usage', 'remove_cgroup', 'release_handle',
]
