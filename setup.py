#!/usr/bin/env python
"""
vmcgroup - Control group management for virtual machine hosts
"""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Define required packages
required_packages = [
    "pydantic>=2.0.0",   # For configuration validation
    "psutil>=5.9.0",     # For reading the host mount table
    "pyyaml>=6.0",       # For configuration file support
    "cachetools>=5.5.2", # For caching discovered mounts
]

setup(
    name="vmcgroup",
    version="1.0.0",
    description="Cgroup v1 confinement of virtual machines for hypervisor drivers",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=required_packages,
    include_package_data=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Operating System :: POSIX :: Linux",
    ],
)
