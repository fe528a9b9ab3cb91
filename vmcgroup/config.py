"""
vmcgroup Configuration

Settings are read from a YAML file and validated with a Pydantic model.
The file is looked up at the explicit path given to load_config(), then
$VMCGROUP_CONF, then /etc/vmcgroup/cgroup.yaml. A missing default file
means defaults; a missing explicit or $VMCGROUP_CONF file is an error.

Example::

    controllers: [cpu, cpuacct, memory, devices]
    device_acl:
      - /dev/null
      - /dev/kvm
    device_perms: rwm
    allow_ptys: true
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .controllers import Controller
from .errors import InvalidArgumentError

logger = logging.getLogger('vmcgroup.config')

DEFAULT_CONFIG_PATH = "/etc/vmcgroup/cgroup.yaml"
CONFIG_ENV_VAR = "VMCGROUP_CONF"

DEFAULT_DEVICE_ACL = [
    "/dev/null", "/dev/full", "/dev/zero",
    "/dev/random", "/dev/urandom",
    "/dev/ptmx", "/dev/kvm", "/dev/kqemu",
    "/dev/rtc", "/dev/hpet",
]


class CgroupConfig(BaseModel):
    """Cgroup settings of the virtualization host"""
    controllers: List[Controller] = Field(default_factory=lambda: list(Controller))
    device_acl: List[str] = Field(default_factory=lambda: list(DEFAULT_DEVICE_ACL))
    device_perms: str = "rwm"
    allow_ptys: bool = True
    use_hierarchy: bool = True

    @field_validator('controllers', mode='before')
    @classmethod
    def validate_controllers(cls, v):
        """Accept controller names and reject unknown ones"""
        if isinstance(v, str):
            v = [c.strip() for c in v.split(',') if c.strip()]
        return [Controller.parse(c) for c in v]

    @field_validator('device_acl')
    @classmethod
    def validate_device_acl(cls, v):
        for path in v:
            if not os.path.isabs(path):
                raise ValueError(f"Device path must be absolute: {path}")
        return v

    @field_validator('device_perms')
    @classmethod
    def validate_device_perms(cls, v):
        if not v or not set(v) <= set("rwm"):
            raise ValueError(f"Invalid device permissions: {v!r}")
        return v

    def manages(self, controller: Controller) -> bool:
        return controller in self.controllers


def load_config(path: Optional[str] = None) -> CgroupConfig:
    """Load configuration, falling back to defaults when no file exists"""
    requested = path or os.environ.get(CONFIG_ENV_VAR)
    config_path = Path(requested or DEFAULT_CONFIG_PATH)

    if not config_path.exists():
        # Only the default location may be absent
        if requested:
            raise InvalidArgumentError(f"Configuration file {config_path} does not exist",
                                       path=str(config_path))
        logger.debug(f"No configuration at {config_path}, using defaults")
        return CgroupConfig()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise InvalidArgumentError(f"Malformed configuration {config_path}: {e}",
                                   path=str(config_path)) from e

    if not isinstance(data, dict):
        raise InvalidArgumentError(f"Configuration {config_path} must be a mapping",
                                   path=str(config_path))

    try:
        config = CgroupConfig(**data)
    except (ValidationError, InvalidArgumentError) as e:
        raise InvalidArgumentError(f"Invalid configuration {config_path}: {e}",
                                   path=str(config_path)) from e

    logger.info(f"Loaded cgroup configuration from {config_path}")
    return config
