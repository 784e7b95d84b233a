#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Validated parameter sets for sentinel instances.

Every value coming from charm config is validated here before any resource
is declared, so an invalid instance never leaves the host half-configured.
"""

import logging
import re
from pathlib import PurePosixPath
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    field_validator,
)

from exceptions import SentinelValidationError
from literals import (
    CONFIG_PATH_TEMPLATE,
    DEFAULT_LOG_DIR,
    DEFAULT_MONITOR_NAME,
    DEFAULT_PID_DIR,
    LOG_FILE_TEMPLATE,
    PID_FILE_TEMPLATE,
    REDIS_GROUP,
    REDIS_INSTALL_DIR,
    REDIS_PORT,
    REDIS_USER,
    SENTINEL_PORT,
    SERVICE_PREFIX,
)

logger = logging.getLogger(__name__)

# Values end up as single tokens on sentinel.conf lines.
NAME_CHARS = r"[A-Za-z0-9_.-]+"
NAME_PATTERN = f"^{NAME_CHARS}$"
HOST_PATTERN = r"^[A-Za-z0-9_.:-]+$"
TOKEN_PATTERN = r"^\S+$"


def _absolute(field: str, value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    if not PurePosixPath(value).is_absolute():
        raise ValueError(f"{field} must be an absolute path, got {value!r}")
    if re.search(r"\s", value):
        raise ValueError(f"{field} must not contain whitespace, got {value!r}")
    return value


class MonitorSpec(BaseModel):
    """One Redis master supervised by a sentinel instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    master_host: StrictStr = Field(default="127.0.0.1", pattern=HOST_PATTERN)
    master_port: StrictInt = Field(default=REDIS_PORT, ge=1, le=65535)
    quorum: StrictInt = Field(default=2, ge=1)
    down_after_milliseconds: StrictInt = Field(default=30000, gt=0)
    parallel_syncs: StrictInt = Field(default=1, ge=1)
    failover_timeout: StrictInt = Field(default=180000, gt=0)
    auth_pass: Optional[StrictStr] = Field(default=None, pattern=TOKEN_PATTERN)
    notification_script: Optional[StrictStr] = None
    client_reconfig_script: Optional[StrictStr] = None

    @field_validator("notification_script", "client_reconfig_script")
    @classmethod
    def _script_is_absolute(cls, value, info):
        return _absolute(info.field_name, value)


class SentinelInstance(BaseModel):
    """Parameters of a single sentinel instance.

    The boolean flags are strict: YAML strings such as "true" are rejected
    instead of being coerced.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sentinel_name: StrictStr = Field(pattern=NAME_PATTERN)
    sentinel_ip: Optional[StrictStr] = Field(default=None, pattern=HOST_PATTERN)
    sentinel_port: StrictInt = Field(default=SENTINEL_PORT, ge=1, le=65535)
    log_dir: StrictStr = DEFAULT_LOG_DIR
    pid_dir: StrictStr = DEFAULT_PID_DIR
    protected_mode: Optional[Literal["yes", "no"]] = None
    monitors: Dict[StrictStr, MonitorSpec] = Field(
        default_factory=lambda: {DEFAULT_MONITOR_NAME: MonitorSpec()}, min_length=1
    )
    running: StrictBool = True
    enabled: StrictBool = True
    force_rewrite: StrictBool = False
    manage_logrotate: StrictBool = True

    @field_validator("log_dir", "pid_dir")
    @classmethod
    def _dir_is_absolute(cls, value, info):
        return _absolute(info.field_name, value)

    @field_validator("monitors")
    @classmethod
    def _monitor_names(cls, value):
        for name in value:
            if not re.fullmatch(NAME_CHARS, name):
                raise ValueError(f"invalid monitor name {name!r}")
        return value

    @property
    def service_name(self) -> str:
        """Name of the OS service running this instance."""
        return f"{SERVICE_PREFIX}{self.sentinel_name}"

    @property
    def config_path(self) -> str:
        return CONFIG_PATH_TEMPLATE.format(name=self.sentinel_name)

    @property
    def log_file(self) -> str:
        return LOG_FILE_TEMPLATE.format(log_dir=self.log_dir, name=self.sentinel_name)

    @property
    def pid_file(self) -> str:
        return PID_FILE_TEMPLATE.format(pid_dir=self.pid_dir, name=self.sentinel_name)

    @property
    def client_host(self) -> str:
        """Address a local client should use to reach this instance."""
        if self.sentinel_ip in (None, "0.0.0.0"):
            return "127.0.0.1"
        return self.sentinel_ip


class RedisInstall(BaseModel):
    """Where and as whom Redis is installed on the host."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    redis_user: StrictStr = Field(default=REDIS_USER, min_length=1)
    redis_group: StrictStr = Field(default=REDIS_GROUP, min_length=1)
    redis_install_dir: StrictStr = REDIS_INSTALL_DIR

    @field_validator("redis_install_dir")
    @classmethod
    def _install_dir_is_absolute(cls, value, info):
        return _absolute(info.field_name, value)


def _describe(subject: str, error: ValidationError) -> str:
    """Flatten a pydantic error into a single status-friendly line."""
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "value"
        problems.append(f"{location}: {detail['msg']}")
    return f"{subject}: " + "; ".join(problems)


def load_instance(name: str, params: Optional[Mapping[str, Any]]) -> SentinelInstance:
    """Validate the parameters of one sentinel instance.

    Args:
        name: the instance name, used as ``sentinel_name``
        params: mapping of instance parameters; ``None`` means all defaults

    Returns:
        The validated `SentinelInstance`

    Raises:
        SentinelValidationError: if any parameter is invalid
    """
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise SentinelValidationError(
            f"sentinel {name!r}: parameters must be a mapping, got {type(params).__name__}"
        )
    if "sentinel_name" in params:
        raise SentinelValidationError(
            f"sentinel {name!r}: sentinel_name is taken from the instance key"
        )

    try:
        return SentinelInstance.model_validate({**params, "sentinel_name": name})
    except ValidationError as e:
        raise SentinelValidationError(_describe(f"sentinel {name!r}", e)) from e


def load_install(params: Mapping[str, Any]) -> RedisInstall:
    """Validate the Redis installation parameters."""
    try:
        return RedisInstall(**params)
    except ValidationError as e:
        raise SentinelValidationError(_describe("redis install", e)) from e


def parse_sentinels(raw: Optional[str]) -> List[SentinelInstance]:
    """Parse and validate the ``sentinels`` config option.

    The option is a YAML mapping of instance name to instance parameters.
    All instances are validated before any is returned.

    Returns:
        A list of `SentinelInstance`, sorted by name
    """
    try:
        data = yaml.safe_load(raw or "")
    except yaml.YAMLError as e:
        raise SentinelValidationError(f"sentinels: invalid YAML: {e}") from e

    if data is None:
        return []
    if not isinstance(data, dict):
        raise SentinelValidationError(
            f"sentinels: expected a mapping of instance names, got {type(data).__name__}"
        )

    instances = [load_instance(str(name), params) for name, params in data.items()]
    logger.debug("Validated sentinel instances: %s", [i.sentinel_name for i in instances])
    return sorted(instances, key=lambda instance: instance.sentinel_name)
