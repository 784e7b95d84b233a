#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Determines the host platform and the OS dependent choices made on it."""

import logging
import shlex
from dataclasses import dataclass
from typing import Dict, Optional

from literals import INIT_SCRIPT_PATH_TEMPLATE, OS_RELEASE_PATH, SYSTEMD_UNIT_PATH_TEMPLATE

logger = logging.getLogger(__name__)

SYSTEMD = "systemd"
INIT = "init"

# os-release ID -> (family, name)
_KNOWN_IDS = {
    "debian": ("Debian", "Debian"),
    "ubuntu": ("Debian", "Ubuntu"),
    "rhel": ("RedHat", "RedHat"),
    "centos": ("RedHat", "CentOS"),
    "fedora": ("RedHat", "Fedora"),
    "rocky": ("RedHat", "Rocky"),
    "almalinux": ("RedHat", "AlmaLinux"),
    "ol": ("RedHat", "OracleLinux"),
    "amzn": ("RedHat", "Amazon"),
    "gentoo": ("Gentoo", "Gentoo"),
}

# OS family -> init script template
INIT_TEMPLATES = {
    "Debian": "redis-sentinel.init.debian.j2",
    "RedHat": "redis-sentinel.init.redhat.j2",
    "Gentoo": "redis-sentinel.init.gentoo.j2",
}

SYSTEMD_TEMPLATE = "redis-sentinel.service.j2"

# OS name -> service provider, anything else is managed with init scripts
SERVICE_PROVIDERS = {
    "Debian": SYSTEMD,
    "Ubuntu": SYSTEMD,
}

# OS family -> package manager
PACKAGE_MANAGERS = {
    "Debian": "apt",
    "RedHat": "yum",
    "Gentoo": "emerge",
}


@dataclass(frozen=True)
class HostPlatform:
    """OS family and name of the host, e.g. ``("Debian", "Ubuntu")``."""

    family: str
    name: str

    @property
    def service_provider(self) -> str:
        return SERVICE_PROVIDERS.get(self.name, INIT)

    @property
    def init_template(self) -> Optional[str]:
        return INIT_TEMPLATES.get(self.family)

    @property
    def service_template(self) -> Optional[str]:
        """Template of the service script, None when the platform has none."""
        if self.service_provider == SYSTEMD:
            return SYSTEMD_TEMPLATE
        return self.init_template

    @property
    def package_manager(self) -> Optional[str]:
        return PACKAGE_MANAGERS.get(self.family)

    def service_script_path(self, sentinel_name: str) -> str:
        if self.service_provider == SYSTEMD:
            return SYSTEMD_UNIT_PATH_TEMPLATE.format(name=sentinel_name)
        return INIT_SCRIPT_PATH_TEMPLATE.format(name=sentinel_name)


def parse_os_release(content: str) -> Dict[str, str]:
    """Parse the KEY=value lines of an os-release file."""
    fields = {}
    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        try:
            parts = shlex.split(value)
        except ValueError:
            parts = [value]
        fields[key] = parts[0] if parts else ""
    return fields


def platform_from_os_release(fields: Dict[str, str]) -> HostPlatform:
    """Map os-release fields to a `HostPlatform`.

    Distributions that are only known through ``ID_LIKE`` keep their own
    name, so e.g. Linux Mint is in the Debian family but is not managed
    with systemd.
    """
    os_id = fields.get("ID", "").lower()
    if os_id in _KNOWN_IDS:
        family, name = _KNOWN_IDS[os_id]
        return HostPlatform(family=family, name=name)

    name = fields.get("NAME", os_id or "unknown")
    for like in fields.get("ID_LIKE", "").lower().split():
        if like in _KNOWN_IDS:
            return HostPlatform(family=_KNOWN_IDS[like][0], name=name)

    return HostPlatform(family=name, name=name)


def detect_platform(path: str = OS_RELEASE_PATH) -> HostPlatform:
    """Read the host platform from the os-release file."""
    with open(path, "r") as file:
        platform = platform_from_os_release(parse_os_release(file.read()))
    logger.debug("Detected platform %s", platform)
    return platform
