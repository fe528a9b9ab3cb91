"""
Unit tests for vmcgroup driver and domain cgroup resolution
"""

import os
import sys
import threading
import unittest

# Add vmcgroup to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from vmcgroup.config import CgroupConfig
from vmcgroup.controllers import Controller
from vmcgroup.errors import (
    CgroupNotFoundError, CgroupPermissionError, HandleReleasedError,
    InvalidArgumentError, UnsupportedControllerError
)
from vmcgroup.manager import CgroupManager
from vmcgroup.testing import DEFAULT_HIERARCHIES, SimulatedCgroupFS

ROOTS = [mountpoint for mountpoint, _ in DEFAULT_HIERARCHIES]


class TestDriverResolution(unittest.TestCase):
    """Test driver-level cgroup resolution"""

    def setUp(self):
        """Set up test fixtures"""
        self.fs = SimulatedCgroupFS()
        self.manager = CgroupManager(self.fs)

    def test_create_then_reopen(self):
        """Test that reopening a created driver cgroup gives the same placement"""
        created = self.manager.resolve_driver("qemu", create=True)
        reopened = self.manager.resolve_driver("qemu", create=False)

        self.assertEqual(created.placement, ("qemu",))
        self.assertEqual(reopened.placement, created.placement)
        self.assertEqual(reopened.controllers, created.controllers)
        self.assertTrue(created.created)
        self.assertFalse(reopened.created)
        for root in ROOTS:
            self.assertTrue(self.fs.isdir(f"{root}/qemu"))

    def test_create_is_idempotent(self):
        """Test that creating an existing driver cgroup reuses it"""
        self.manager.resolve_driver("qemu", create=True)
        again = self.manager.resolve_driver("qemu", create=True)

        self.assertFalse(again.created)
        self.assertEqual(again.controllers, frozenset(Controller))

    def test_missing_driver_not_found(self):
        """Test that opening a cgroup that was never created fails"""
        with self.assertRaises(CgroupNotFoundError):
            self.manager.resolve_driver("lxc", create=False)

    def test_partially_missing_driver(self):
        """Test that controllers missing the directory are left out of the span"""
        self.manager.resolve_driver("qemu", create=True)
        self.fs.rmdir("/sys/fs/cgroup/devices/qemu")

        handle = self.manager.resolve_driver("qemu")
        self.assertFalse(handle.spans(Controller.DEVICES))
        self.assertTrue(handle.spans(Controller.MEMORY))

    def test_invalid_names(self):
        """Test rejection of names that are not a single path segment"""
        for name in ("", ".", "..", "a/b", "nul\0"):
            with self.assertRaises(InvalidArgumentError):
                self.manager.resolve_driver(name, create=True)

    def test_memory_hierarchy_enabled(self):
        """Test that a new driver cgroup enables memory.use_hierarchy"""
        self.manager.resolve_driver("qemu", create=True)
        self.assertEqual(self.fs.read("/sys/fs/cgroup/memory/qemu/memory.use_hierarchy"), "1\n")

    def test_memory_hierarchy_disabled_by_config(self):
        """Test that use_hierarchy can be turned off"""
        manager = CgroupManager(self.fs, CgroupConfig(use_hierarchy=False))
        manager.resolve_driver("qemu", create=True)
        self.assertEqual(self.fs.read("/sys/fs/cgroup/memory/qemu/memory.use_hierarchy"), "0\n")

    def test_cpuset_inherited(self):
        """Test that new cgroups copy the parent's cpuset"""
        fs = SimulatedCgroupFS(cpus="0-7", mems="0-1")
        manager = CgroupManager(fs)
        driver = manager.resolve_driver("qemu", create=True)
        manager.resolve_domain(driver, "vm1", create=True)

        for path in ("/sys/fs/cgroup/cpuset/qemu", "/sys/fs/cgroup/cpuset/qemu/vm1"):
            self.assertEqual(fs.read(f"{path}/cpuset.cpus"), "0-7\n")
            self.assertEqual(fs.read(f"{path}/cpuset.mems"), "0-1\n")

    def test_configured_controllers_only(self):
        """Test that only configured controllers are used"""
        config = CgroupConfig(controllers=["cpu", "cpuacct", "memory"])
        manager = CgroupManager(self.fs, config)
        handle = manager.resolve_driver("qemu", create=True)

        self.assertEqual(handle.controllers,
                         {Controller.CPU, Controller.CPUACCT, Controller.MEMORY})
        self.assertFalse(self.fs.isdir("/sys/fs/cgroup/devices/qemu"))

    def test_no_controllers_mounted(self):
        """Test that creation needs at least one usable controller"""
        manager = CgroupManager(SimulatedCgroupFS(hierarchies=[]))
        with self.assertRaises(UnsupportedControllerError):
            manager.resolve_driver("qemu", create=True)


class TestPrivilege(unittest.TestCase):
    """Test creation against non-writable mounts"""

    def setUp(self):
        """Set up test fixtures"""
        self.fs = SimulatedCgroupFS(readonly=["/sys/fs/cgroup/devices"])
        self.manager = CgroupManager(self.fs)

    def test_privileged_fails_and_rolls_back(self):
        """Test that a privileged driver refuses a read-only mount"""
        with self.assertRaises(CgroupPermissionError) as ctx:
            self.manager.resolve_driver("qemu", privileged=True, create=True)

        self.assertEqual(ctx.exception.controller, "devices")
        for root in ROOTS:
            self.assertFalse(self.fs.isdir(f"{root}/qemu"))

    def test_unprivileged_skips(self):
        """Test that an unprivileged driver degrades to writable mounts"""
        driver = self.manager.resolve_driver("qemu", privileged=False, create=True)
        domain = self.manager.resolve_domain(driver, "vm1", create=True)

        self.assertFalse(driver.spans(Controller.DEVICES))
        self.assertFalse(domain.privileged)
        with self.assertRaises(UnsupportedControllerError):
            domain.devices.allow('c', 1, 3)
        domain.memory.set_limit_kb(1024)


class TestDomainResolution(unittest.TestCase):
    """Test domain-level cgroup resolution"""

    def setUp(self):
        """Set up test fixtures"""
        self.fs = SimulatedCgroupFS()
        self.manager = CgroupManager(self.fs)
        self.driver = self.manager.resolve_driver("qemu", create=True)

    def test_domain_nested_under_driver(self):
        """Test that a domain placement extends the driver placement by one segment"""
        domain = self.manager.resolve_domain(self.driver, "vm1", create=True)

        self.assertEqual(domain.placement, self.driver.placement + ("vm1",))
        self.assertEqual(domain.name, "vm1")
        self.assertEqual(domain.path(Controller.MEMORY), "/sys/fs/cgroup/memory/qemu/vm1")
        self.assertEqual(domain.path(Controller.CPUACCT), "/sys/fs/cgroup/cpu,cpuacct/qemu/vm1")

    def test_reopen_existing_domain(self):
        """Test re-attaching to a domain cgroup after a restart"""
        self.manager.resolve_domain(self.driver, "vm1", create=True)

        restarted = CgroupManager(self.fs)
        driver = restarted.resolve_driver("qemu")
        domain = restarted.resolve_domain(driver, "vm1")
        self.assertEqual(domain.relative_path, "qemu/vm1")

    def test_missing_domain_not_found(self):
        """Test that an absent domain cgroup is reported"""
        with self.assertRaises(CgroupNotFoundError):
            self.manager.resolve_domain(self.driver, "vm2", create=False)

    def test_domain_limited_to_driver_controllers(self):
        """Test that a domain never spans more than its driver"""
        config = CgroupConfig(controllers=["memory"])
        driver = CgroupManager(self.fs, config).resolve_driver("lxc", create=True)
        domain = self.manager.resolve_domain(driver, "ct1", create=True)

        self.assertEqual(domain.controllers, {Controller.MEMORY})
        self.assertFalse(self.fs.isdir("/sys/fs/cgroup/cpuset/lxc/ct1"))

    def test_domain_of_domain_rejected(self):
        """Test that domains cannot be nested under domains"""
        domain = self.manager.resolve_domain(self.driver, "vm1", create=True)
        with self.assertRaises(InvalidArgumentError):
            self.manager.resolve_domain(domain, "nested", create=True)

    def test_domain_named_after_control_file(self):
        """Test that a domain name clashing with a control file is rejected"""
        for name in ("tasks", "notify_on_release", "memory.limit_in_bytes"):
            with self.assertRaises(InvalidArgumentError):
                self.manager.resolve_domain(self.driver, name, create=True)
        self.assertEqual(self.fs.read("/sys/fs/cgroup/memory/qemu/tasks"), "")

    def test_released_driver_rejected(self):
        """Test that a released driver handle cannot resolve domains"""
        self.driver.release()
        with self.assertRaises(HandleReleasedError):
            self.manager.resolve_domain(self.driver, "vm1", create=True)

    def test_devices_controller_absent(self):
        """Test domain creation on a host without the devices controller"""
        fs = SimulatedCgroupFS(hierarchies=[h for h in DEFAULT_HIERARCHIES
                                            if "devices" not in h[1]])
        manager = CgroupManager(fs)
        driver = manager.resolve_driver("qemu", create=True)
        domain = manager.resolve_domain(driver, "vm1", create=True)

        with self.assertRaises(UnsupportedControllerError) as ctx:
            domain.devices.allow('c', 1, 3)
        self.assertEqual(ctx.exception.controller, "devices")
        with self.assertRaises(UnsupportedControllerError):
            domain.devices.deny_all()

    def test_concurrent_domain_creation(self):
        """Test creating different domains under one driver from many threads"""
        errors = []
        handles = {}

        def create(name):
            try:
                handles[name] = self.manager.resolve_domain(self.driver, name, create=True)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=create, args=(f"vm{i}",)) for i in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(len(handles), 10)
        for i in range(10):
            self.assertTrue(self.fs.isdir(f"/sys/fs/cgroup/memory/qemu/vm{i}"))


if __name__ == '__main__':
    unittest.main()
