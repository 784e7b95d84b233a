#!/usr/bin/env python3
# Copyright 2022 Canonical Ltd.
# See LICENSE file for licensing details.


from pathlib import Path

import yaml

from platforms import HostPlatform

ROOT_DIR = Path(__file__).parents[1]
TEMPLATE_DIR = ROOT_DIR / "templates"
METADATA = yaml.safe_load((ROOT_DIR / "metadata.yaml").read_text())
APP_NAME = METADATA["name"]

UBUNTU = HostPlatform(family="Debian", name="Ubuntu")
DEBIAN = HostPlatform(family="Debian", name="Debian")
MINT = HostPlatform(family="Debian", name="Linux Mint")
CENTOS = HostPlatform(family="RedHat", name="CentOS")
GENTOO = HostPlatform(family="Gentoo", name="Gentoo")
ARCH = HostPlatform(family="Arch Linux", name="Arch Linux")

OS_RELEASE_UBUNTU = """\
PRETTY_NAME="Ubuntu 22.04.3 LTS"
NAME="Ubuntu"
VERSION_ID="22.04"
ID=ubuntu
ID_LIKE=debian
"""

OS_RELEASE_MINT = """\
NAME="Linux Mint"
VERSION="21.2 (Victoria)"
ID=linuxmint
ID_LIKE="ubuntu debian"
"""

OS_RELEASE_ROCKY = """\
NAME="Rocky Linux"
VERSION="9.2 (Blue Onyx)"
ID="rocky"
ID_LIKE="rhel centos fedora"
"""
