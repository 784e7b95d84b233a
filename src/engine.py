#!/usr/bin/env python3
# Copyright 2024 Canonical Ltd.
# See LICENSE file for licensing details.

"""Converges the host to a declared resource graph."""

import logging
import subprocess
from dataclasses import dataclass, field
from typing import List, Set

import host
from exceptions import ResourceApplyError
from log_adapter import ResourceAdapter, resource_logger
from platforms import SYSTEMD, HostPlatform
from resources import ABSENT, File, Package, Resource, ResourceGraph, Service

logger = logging.getLogger(__name__)

SYSTEMD_UNIT_DIR = "/lib/systemd/system/"


@dataclass
class ApplyReport:
    """Outcome of applying a resource graph."""

    noop: bool = False
    changed: List[str] = field(default_factory=list)
    refreshed: List[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed)


class Engine:
    """Apply resource graphs on a host.

    Resources are applied one at a time in dependency order. The first
    failure stops the run, leaving the remaining resources untouched.

    With ``noop`` set, the engine only reports what it would change.
    """

    def __init__(self, platform: HostPlatform, host_ops=host, noop: bool = False) -> None:
        self.platform = platform
        self.host = host_ops
        self.noop = noop
        self._reload_pending = False

    def apply(self, graph: ResourceGraph) -> ApplyReport:
        report = ApplyReport(noop=self.noop)
        changed: Set[str] = set()
        self._reload_pending = False

        for resource in graph.ordered():
            log = resource_logger(logger, resource.ref)
            refresh = bool(graph.notified_by(resource) & changed)
            try:
                if self._apply_resource(resource, refresh, log, report):
                    changed.add(resource.ref)
                    report.changed.append(resource.ref)
            except subprocess.CalledProcessError as e:
                stderr = (e.stderr or "").strip()
                raise ResourceApplyError(
                    resource.ref, f"{' '.join(e.cmd)} exited with {e.returncode}: {stderr}"
                ) from e
            except (OSError, LookupError, NotImplementedError) as e:
                raise ResourceApplyError(resource.ref, str(e)) from e

        if self._reload_pending and not self.noop:
            self.host.daemon_reload()
            self._reload_pending = False

        logger.info(
            "Applied %d resources, %d changed%s",
            len(graph),
            len(report.changed),
            " (noop)" if self.noop else "",
        )
        return report

    def _apply_resource(
        self, resource: Resource, refresh: bool, log: ResourceAdapter, report: ApplyReport
    ) -> bool:
        if isinstance(resource, File):
            changed = self._apply_file(resource, log)
            if changed and resource.path.startswith(SYSTEMD_UNIT_DIR):
                self._reload_pending = True
            return changed
        if isinstance(resource, Service):
            return self._apply_service(resource, refresh, log, report)
        if isinstance(resource, Package):
            return self._apply_package(resource, log)
        raise TypeError(f"Unknown resource {resource!r}")

    def _apply_file(self, resource: File, log: ResourceAdapter) -> bool:
        if resource.ensure == ABSENT:
            if not self.host.file_exists(resource.path):
                return False
            log.info("Removing file")
            if not self.noop:
                self.host.remove_file(resource.path)
            return True

        current = self.host.read_file(resource.path)
        if current is None or (resource.replace and current != resource.content):
            log.info("Creating file" if current is None else "Replacing content")
            if not self.noop:
                self.host.write_file(
                    resource.path, resource.content, resource.owner, resource.group, resource.mode
                )
            return True

        if current != resource.content:
            log.debug("Content differs, keeping it as replace is disabled")

        wanted = (resource.owner, resource.group, resource.mode)
        if self.host.file_attributes(resource.path) != wanted:
            log.info("Setting owner %s:%s and mode %o", *wanted)
            if not self.noop:
                self.host.set_attributes(resource.path, *wanted)
            return True
        return False

    def _apply_service(
        self, resource: Service, refresh: bool, log: ResourceAdapter, report: ApplyReport
    ) -> bool:
        if resource.provider == SYSTEMD and self._reload_pending and not self.noop:
            self.host.daemon_reload()
            self._reload_pending = False

        changed = False
        running = self.host.service_running(resource.name, resource.provider)
        if resource.running and not running:
            log.info("Starting service")
            if not self.noop:
                self.host.service_start(resource.name, resource.provider)
            changed = True
        elif resource.running and refresh:
            log.info("Restarting service to pick up changes")
            if not self.noop:
                self.host.service_restart(resource.name, resource.provider)
            report.refreshed.append(resource.ref)
            changed = True
        elif not resource.running and running:
            log.info("Stopping service")
            if not self.noop:
                self.host.service_stop(resource.name, resource.provider)
            changed = True

        family = self.platform.family
        enabled = self.host.service_enabled(resource.name, resource.provider, family)
        if resource.enabled != enabled:
            log.info("Enabling service" if resource.enabled else "Disabling service")
            if not self.noop:
                if resource.enabled:
                    self.host.service_enable(resource.name, resource.provider, family)
                else:
                    self.host.service_disable(resource.name, resource.provider, family)
            changed = True
        return changed

    def _apply_package(self, resource: Package, log: ResourceAdapter) -> bool:
        manager = self.platform.package_manager
        if manager is None:
            raise ResourceApplyError(
                resource.ref, f"no package manager known for {self.platform.family}"
            )
        if self.host.package_installed(resource.name, manager):
            return False
        log.info("Installing package")
        if not self.noop:
            self.host.install_package(resource.name, manager)
        return True
