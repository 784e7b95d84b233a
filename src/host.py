#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Helpers acting on the machine the charm runs on.

File writes, systemd services and apt packages go through charmhelpers
where it supports the host. charmhelpers only loads on Ubuntu and CentOS,
so other distributions and init script services use plain commands.

Commands raise `subprocess.CalledProcessError` when they fail, file
helpers raise `OSError`.
"""

import glob
import grp
import logging
import os
import pwd
import shutil
import stat
import subprocess
import tempfile
from typing import List, Optional, Tuple

from charmhelpers.osplatform import get_platform
from tenacity import (
    before_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from platforms import SYSTEMD

logger = logging.getLogger(__name__)

INIT_DIR = "/etc/init.d"


def _charmhelpers_supported() -> bool:
    # charmhelpers.core.host and charmhelpers.fetch raise RuntimeError when
    # imported on a distribution get_platform() does not know.
    try:
        get_platform()
    except (RuntimeError, OSError, KeyError):
        return False
    return True


def _charmhelpers_host():
    """Return `charmhelpers.core.host`, or None if it can't run on this host."""
    if not _charmhelpers_supported():
        return None
    from charmhelpers.core import host as ch_host

    return ch_host


def _charmhelpers_fetch():
    """Return `charmhelpers.fetch`, or None if it can't run on this host."""
    if not _charmhelpers_supported():
        return None
    from charmhelpers import fetch

    return fetch


def run(
    cmd: List[str], check: bool = True, env: Optional[dict] = None
) -> subprocess.CompletedProcess:
    """Run a command, capturing its output."""
    logger.debug("Running {}".format(" ".join(cmd)))
    return subprocess.run(cmd, check=check, capture_output=True, text=True, env=env)


def file_exists(path: str) -> bool:
    return os.path.lexists(path)


def read_file(path: str) -> Optional[str]:
    """Return the content of a file, or None if it does not exist."""
    try:
        with open(path, "r") as f:
            return f.read()
    except FileNotFoundError:
        return None


def file_attributes(path: str) -> Tuple[str, str, int]:
    """Return owner, group and permission bits of a file."""
    st = os.stat(path)
    try:
        owner = pwd.getpwuid(st.st_uid).pw_name
    except KeyError:
        owner = str(st.st_uid)
    try:
        group = grp.getgrgid(st.st_gid).gr_name
    except KeyError:
        group = str(st.st_gid)
    return owner, group, stat.S_IMODE(st.st_mode)


def set_attributes(path: str, owner: str, group: str, mode: int) -> None:
    shutil.chown(path, user=owner, group=group)
    os.chmod(path, mode)


def write_file(path: str, content: str, owner: str, group: str, mode: int) -> None:
    """Atomically replace a file with the given content and attributes.

    The content is written to a temporary file in the same directory, which
    is then renamed over ``path``. Unknown owners or groups raise `KeyError`
    or `LookupError` before ``path`` is touched.
    """
    directory = os.path.dirname(path)
    os.makedirs(directory, mode=0o755, exist_ok=True)

    ch_host = _charmhelpers_host()
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=".tmp")
    try:
        if ch_host is not None:
            os.close(fd)
            ch_host.write_file(tmp_path, content, owner=owner, group=group, perms=mode)
        else:
            with os.fdopen(fd, "w") as f:
                f.write(content)
            set_attributes(tmp_path, owner, group, mode)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def remove_file(path: str) -> None:
    os.unlink(path)


def _init_script(name: str) -> str:
    return os.path.join(INIT_DIR, name)


def _systemctl(action: str, name: str, check: bool = True) -> bool:
    """Run ``systemctl <action> <name>``, returning whether it succeeded."""
    ch_host = _charmhelpers_host()
    if ch_host is not None:
        succeeded = ch_host.service(action, name)
    else:
        succeeded = run(["systemctl", action, name], check=False).returncode == 0
    if check and not succeeded:
        raise subprocess.CalledProcessError(1, ["systemctl", action, name])
    return succeeded


def service_running(name: str, provider: str) -> bool:
    if provider == SYSTEMD:
        ch_host = _charmhelpers_host()
        if ch_host is not None:
            return ch_host.service_running(name)
        return _systemctl("is-active", name, check=False)

    if not os.path.exists(_init_script(name)):
        return False
    return run([_init_script(name), "status"], check=False).returncode == 0


def _control(action: str, name: str, provider: str) -> None:
    if provider != SYSTEMD:
        run([_init_script(name), action])
        return

    ch_host = _charmhelpers_host()
    if ch_host is None:
        _systemctl(action, name)
        return
    control = {
        "start": ch_host.service_start,
        "stop": ch_host.service_stop,
        "restart": ch_host.service_restart,
    }[action]
    if not control(name):
        raise subprocess.CalledProcessError(1, ["systemctl", action, name])


def service_start(name: str, provider: str) -> None:
    _control("start", name, provider)


def service_stop(name: str, provider: str) -> None:
    _control("stop", name, provider)


def service_restart(name: str, provider: str) -> None:
    _control("restart", name, provider)


def service_enabled(name: str, provider: str, family: str) -> bool:
    """Check whether a service starts at boot."""
    if provider == SYSTEMD:
        return _systemctl("is-enabled", name, check=False)

    if family == "Debian":
        return bool(glob.glob(f"/etc/rc[2345].d/S[0-9][0-9]{name}"))
    if family == "RedHat":
        return run(["chkconfig", name], check=False).returncode == 0
    if family == "Gentoo":
        output = run(["rc-update", "show", "default"], check=False).stdout
        return any(line.split("|")[0].strip() == name for line in output.splitlines())
    return False


def service_enable(name: str, provider: str, family: str) -> None:
    if provider == SYSTEMD:
        _systemctl("enable", name)
    elif family == "Debian":
        run(["update-rc.d", name, "defaults"])
    elif family == "RedHat":
        run(["chkconfig", "--add", name])
        run(["chkconfig", name, "on"])
    elif family == "Gentoo":
        run(["rc-update", "add", name, "default"])
    else:
        raise NotImplementedError(f"Can't enable services on {family}")


def service_disable(name: str, provider: str, family: str) -> None:
    if provider == SYSTEMD:
        _systemctl("disable", name)
    elif family == "Debian":
        run(["update-rc.d", "-f", name, "remove"])
    elif family == "RedHat":
        run(["chkconfig", name, "off"])
    elif family == "Gentoo":
        run(["rc-update", "del", name, "default"])
    else:
        raise NotImplementedError(f"Can't disable services on {family}")


def daemon_reload() -> None:
    run(["systemctl", "daemon-reload"])


def package_installed(name: str, manager: str) -> bool:
    if manager == "apt":
        fetch = _charmhelpers_fetch()
        if fetch is not None:
            return not fetch.filter_installed_packages([name])
        result = run(["dpkg-query", "-W", "-f=${Status}", name], check=False)
        return result.returncode == 0 and result.stdout.strip() == "install ok installed"
    if manager == "yum":
        return run(["rpm", "-q", name], check=False).returncode == 0
    if manager == "emerge":
        return bool(glob.glob(f"/var/db/pkg/*/{name}-[0-9]*"))
    return False


def install_package(name: str, manager: str) -> None:
    """Install a package.

    charmhelpers' ``apt_install`` retries on its own while dpkg is locked,
    the other package managers go through `_install`.
    """
    if manager == "apt":
        fetch = _charmhelpers_fetch()
        if fetch is not None:
            fetch.apt_install([name], fatal=True)
            return
        env = dict(os.environ, DEBIAN_FRONTEND="noninteractive")
        _install(["apt-get", "install", "-y", "-q", name], env=env)
    elif manager == "yum":
        _install(["yum", "install", "-y", name])
    elif manager == "emerge":
        _install(["emerge", "--noreplace", name])
    else:
        raise NotImplementedError(f"Unknown package manager {manager}")


@retry(
    stop=stop_after_attempt(5),
    wait=wait_fixed(10),
    retry=retry_if_exception_type(subprocess.CalledProcessError),
    reraise=True,
    before=before_log(logger, logging.DEBUG),
)
def _install(cmd: List[str], env: Optional[dict] = None) -> None:
    """Run a package manager command, retrying while it is locked."""
    run(cmd, env=env)
