"""
vmcgroup Testing Support
In-memory cgroup filesystem for exercising cgroup logic without a host
"""

from .simulated import DEFAULT_HIERARCHIES, SimulatedCgroupFS

__all__ = ['SimulatedCgroupFS', 'DEFAULT_HIERARCHIES']
