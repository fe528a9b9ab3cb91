"""
vmcgroup Exception Hierarchy
Errors raised by cgroup resolution, control file I/O and teardown
"""

import errno as _errno
from typing import Optional


class CgroupError(Exception):
    """Base exception for all cgroup errors"""

    def __init__(self, message: str, controller: Optional[str] = None,
                 path: Optional[str] = None, errno: Optional[int] = None):
        super().__init__(message)
        self.controller = controller
        self.path = path
        self.errno = errno


class UnsupportedControllerError(CgroupError):
    """Raised when a controller is not mounted or not spanned by the handle"""
    pass


class CgroupPermissionError(CgroupError):
    """Raised when a mount is present but not writable or removable"""
    pass


class CgroupNotFoundError(CgroupError):
    """Raised when a cgroup or control file does not exist"""
    pass


class CgroupBusyError(CgroupError):
    """Raised when a cgroup still holds tasks or children on removal"""
    pass


class InvalidArgumentError(CgroupError):
    """Raised for malformed names, identifiers or values"""
    pass


class CgroupWriteError(CgroupError):
    """Raised when the kernel rejects a control file read or write"""
    pass


class HandleReleasedError(RuntimeError):
    """Raised when an operation is issued against a released handle"""
    pass


_ERRNO_CLASSES = {
    _errno.EACCES: CgroupPermissionError,
    _errno.EPERM: CgroupPermissionError,
    _errno.EROFS: CgroupPermissionError,
    _errno.ENOENT: CgroupNotFoundError,
    _errno.EBUSY: CgroupBusyError,
    _errno.ENOTEMPTY: CgroupBusyError,
    # A cgroup name colliding with a control file or other non-directory
    _errno.EEXIST: InvalidArgumentError,
}


def from_os_error(exc: OSError, action: str, controller: Optional[str] = None,
                  path: Optional[str] = None) -> CgroupError:
    """Translate an OSError into the matching CgroupError subclass"""
    cls = _ERRNO_CLASSES.get(exc.errno, CgroupWriteError)
    where = f"{controller} " if controller else ""
    message = f"Failed to {action} {where}{path or exc.filename}: {exc.strerror or exc}"
    return cls(message, controller=controller, path=path, errno=exc.errno)
